"""
OCR Client Tests
================
"""

import base64

import pytest

from infinity_ocr.ocr.client import (
    EmptyBatchError,
    EmptyResponseError,
    MissingCredentialError,
    OCRClient,
    RemoteCallError,
    TRAILING_INSTRUCTION,
    parse_ocr_response,
)

from conftest import FakeTransport, make_payload


class TestParseOCRResponse:
    """Tests for JSON-or-raw response parsing."""

    def test_full_text_field(self):
        result = parse_ocr_response('{"full_text":"ABC123"}')

        assert result.merged_text == "ABC123"
        assert result.structured == {"full_text": "ABC123"}
        assert result.raw_text == '{"full_text":"ABC123"}'

    def test_plain_text_fallback(self):
        result = parse_ocr_response("Hello world")

        assert result.merged_text == "Hello world"
        assert result.structured == {"raw_output": "Hello world"}

    def test_markdown_fences_stripped(self):
        raw = '```json\n{"full_text": "Line 1\\nLine 2", "lines": 2}\n```'
        result = parse_ocr_response(raw)

        assert result.merged_text == "Line 1\nLine 2"
        assert result.structured["lines"] == 2
        assert result.raw_text == raw

    def test_other_json_is_pretty_printed(self):
        result = parse_ocr_response('{"code": "X-42", "price": 9.5}')

        assert result.merged_text == '{\n  "code": "X-42",\n  "price": 9.5\n}'
        assert result.structured == {"code": "X-42", "price": 9.5}

    def test_empty_full_text_falls_back_to_json(self):
        result = parse_ocr_response('{"full_text": ""}')
        assert result.merged_text == '{\n  "full_text": ""\n}'

    def test_json_list(self):
        result = parse_ocr_response('["a", "b"]')
        assert result.structured == ["a", "b"]
        assert result.merged_text == '[\n  "a",\n  "b"\n]'

    def test_json_scalar(self):
        assert parse_ocr_response("12345").merged_text == "12345"
        assert parse_ocr_response('"quoted"').merged_text == "quoted"

    @pytest.mark.parametrize("raw", ["Infinity", "-Infinity", "NaN", "{\"price\": NaN}"])
    def test_non_standard_constants_are_raw(self, raw):
        result = parse_ocr_response(raw)

        assert result.merged_text == raw
        assert result.structured == {"raw_output": raw}

    def test_markdown_prompt_output_is_raw(self):
        raw = "# Title\n\n- item one\n- item two"
        result = parse_ocr_response(raw)

        assert result.merged_text == raw
        assert result.structured == {"raw_output": raw}


class TestOCRClient:
    """Tests for the remote call contract."""

    def test_missing_credential_fails_before_network(self, run_async):
        transport = FakeTransport()
        client = OCRClient(transport)

        with pytest.raises(MissingCredentialError, match="API Key is missing"):
            run_async(client.extract([make_payload()], "m", "prompt", api_key=""))

        assert transport.requests == []
        assert client.call_count == 0

    def test_request_contents(self, run_async):
        transport = FakeTransport()
        client = OCRClient(transport)
        images = [make_payload("a"), make_payload("b")]

        run_async(client.extract(images, "gemini-2.5-flash", "Extract text.", api_key="k"))

        request = transport.requests[0]
        assert request.model == "gemini-2.5-flash"
        assert request.system_instruction == "Extract text."
        assert request.prompt == TRAILING_INSTRUCTION
        assert request.temperature == pytest.approx(0.1)
        assert request.api_key == "k"
        assert [image.data for image in request.images] == [b"jpeg-a", b"jpeg-b"]
        assert all(image.mime_type == "image/jpeg" for image in request.images)

    def test_api_key_not_in_request_repr(self, run_async):
        transport = FakeTransport()
        run_async(OCRClient(transport).extract([make_payload()], "m", "p", api_key="secret-123"))

        assert "secret-123" not in repr(transport.requests[0])

    def test_undecodable_images_skipped(self, run_async):
        transport = FakeTransport()
        images = ["***not base64***", base64.b64encode(b"ok").decode()]

        run_async(OCRClient(transport).extract(images, "m", "p", api_key="k"))

        assert [image.data for image in transport.requests[0].images] == [b"ok"]

    def test_undecodable_batch_never_sent(self, run_async):
        transport = FakeTransport()
        client = OCRClient(transport)

        with pytest.raises(EmptyBatchError, match="None of the 2 batch images"):
            run_async(client.extract(["***", "@@@"], "m", "p", api_key="k"))

        assert transport.requests == []
        assert client.call_count == 0
        assert client.error_count == 1

    def test_success(self, run_async):
        client = OCRClient(FakeTransport(['{"full_text":"ABC123"}']))

        result = run_async(client.extract([make_payload()], "m", "p", api_key="k"))

        assert result.merged_text == "ABC123"
        assert client.error_count == 0

    def test_remote_failure_propagates_message(self, run_async):
        client = OCRClient(FakeTransport(error=RuntimeError("quota exceeded")))

        with pytest.raises(RemoteCallError, match="quota exceeded"):
            run_async(client.extract([make_payload()], "m", "p", api_key="k"))

        assert client.error_count == 1

    def test_remote_failure_without_message(self, run_async):
        client = OCRClient(FakeTransport(error=RuntimeError()))

        with pytest.raises(RemoteCallError, match="Failed to process images"):
            run_async(client.extract([make_payload()], "m", "p", api_key="k"))

    def test_empty_response(self, run_async):
        client = OCRClient(FakeTransport([""]))

        with pytest.raises(EmptyResponseError):
            run_async(client.extract([make_payload()], "m", "p", api_key="k"))

    def test_metrics(self, run_async):
        client = OCRClient(FakeTransport())
        run_async(client.extract([make_payload()], "m", "p", api_key="k"))

        assert client.get_metrics() == {"call_count": 1, "error_count": 0, "temperature": 0.1}
