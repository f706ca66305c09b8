# tests/core/test_error_handling.py

import asyncio
import logging

import pytest
from botocore.exceptions import ClientError as BotocoreClientError
from botocore.exceptions import EndpointConnectionError
from PIL import UnidentifiedImageError as PILUnidentifiedImageError

from og_pipeline.core.exceptions import (
    OgPipelineError,
    RenderError,
    StorageError,
    UploadError,
    UrlResolutionError,
)
from og_pipeline.core.error_handling import RunErrorCollector, with_error_handling


def _client_error(code: str = "AccessDenied") -> BotocoreClientError:
    return BotocoreClientError(
        {"Error": {"Code": code, "Message": "Denied"}}, "PutObject"
    )


# --- Tests for @with_error_handling decorator ---

def test_with_error_handling_passes_return_value():
    @with_error_handling()
    def add(a, b):
        return a + b

    assert add(2, 3) == 5


def test_with_error_handling_translates_client_error_with_code_and_key():
    @with_error_handling(UploadError)
    def put(key):
        raise _client_error("NoSuchBucket")

    with pytest.raises(UploadError) as excinfo:
        put(key="og/1.png")

    assert "NoSuchBucket" in str(excinfo.value)
    assert excinfo.value.key == "og/1.png"
    assert isinstance(excinfo.value.__cause__, BotocoreClientError)


def test_with_error_handling_translates_botocore_error():
    @with_error_handling(UrlResolutionError)
    def resolve(key):
        raise EndpointConnectionError(endpoint_url="https://s3.invalid")

    with pytest.raises(UrlResolutionError, match="Storage client error"):
        resolve(key="k")


def test_with_error_handling_maps_unidentified_image_to_render_error():
    @with_error_handling(StorageError)
    def decode():
        raise PILUnidentifiedImageError("cannot identify image file")

    with pytest.raises(RenderError):
        decode()


def test_with_error_handling_leaves_pipeline_errors_untouched():
    original = RenderError("boom")

    @with_error_handling(UploadError)
    def fail():
        raise original

    with pytest.raises(RenderError) as excinfo:
        fail()
    assert excinfo.value is original


def test_with_error_handling_wraps_generic_errors():
    @with_error_handling()
    def fail():
        raise ValueError("bad value")

    with pytest.raises(OgPipelineError, match="Error in fail: bad value"):
        fail()


def test_with_error_handling_supports_coroutines():
    @with_error_handling(UploadError)
    async def upload(key, data):
        raise OSError("disk full")

    with pytest.raises(UploadError) as excinfo:
        asyncio.run(upload(key="a/b.png", data=b""))
    assert excinfo.value.key == "a/b.png"
    assert "disk full" in str(excinfo.value)


def test_with_error_handling_preserves_function_metadata():
    @with_error_handling()
    async def documented():
        """Docstring."""

    assert documented.__name__ == "documented"
    assert documented.__doc__ == "Docstring."


# --- Tests for RunErrorCollector ---

def test_run_error_collector_without_errors(caplog):
    logger_name = RunErrorCollector.__module__ + "." + RunErrorCollector.__name__
    with caplog.at_level(logging.INFO, logger=logger_name):
        with RunErrorCollector("Test run") as collector:
            pass

    assert not collector.has_errors
    assert "Starting Test run." in caplog.text
    assert "Test run completed successfully." in caplog.text


def test_run_error_collector_summarizes_errors(caplog):
    logger_name = RunErrorCollector.__module__ + "." + RunErrorCollector.__name__
    with caplog.at_level(logging.DEBUG, logger=logger_name):
        with RunErrorCollector("Test run") as collector:
            collector.add_error("render failed", "photo-1")
            collector.add_error("upload failed", "photo-2")

    assert collector.has_errors
    assert len(collector.errors) == 2
    assert "Test run completed with 2 error(s)." in caplog.text
    assert "Error 1/2 for item 'photo-1': render failed" in caplog.text
    assert "Error 2/2 for item 'photo-2': upload failed" in caplog.text


def test_run_error_collector_does_not_suppress_exceptions(caplog):
    logger_name = RunErrorCollector.__module__ + "." + RunErrorCollector.__name__
    with caplog.at_level(logging.ERROR, logger=logger_name):
        with pytest.raises(RuntimeError):
            with RunErrorCollector("Test run"):
                raise RuntimeError("unexpected")

    assert "failed due to an unhandled exception: unexpected" in caplog.text
