"""
Tests for the Google (Gemini) adapter.
"""

import json

from untangle_gateway.adapters import GoogleAdapter
from untangle_gateway.models.provider import ModelConfig
from untangle_gateway.models.request import ChatRequest


def request(model: str = "gemini-1.5-flash", **kwargs) -> ChatRequest:
    return ChatRequest.model_validate({
        "model": model,
        "messages": [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "Hi!"},
            {"role": "user", "content": "Bye"},
        ],
        **kwargs,
    })


class TestGoogleRequest:

    def test_roles_and_system_instruction(self):
        data = GoogleAdapter().transform_request(request())

        assert data["systemInstruction"] == {"parts": [{"text": "Be brief."}]}
        assert data["contents"] == [
            {"role": "user", "parts": [{"text": "Hello"}]},
            {"role": "model", "parts": [{"text": "Hi!"}]},
            {"role": "user", "parts": [{"text": "Bye"}]},
        ]

    def test_generation_config_only_has_set_fields(self):
        data = GoogleAdapter().transform_request(request(temperature=0.1, stop=["a", "b"]))

        assert data["generationConfig"] == {"temperature": 0.1, "stopSequences": ["a", "b"]}

    def test_generation_config_all_fields(self):
        data = GoogleAdapter().transform_request(request(temperature=0.1, top_p=0.8, max_tokens=64, stop="x"))

        assert data["generationConfig"] == {
            "temperature": 0.1,
            "topP": 0.8,
            "maxOutputTokens": 64,
            "stopSequences": ["x"],
        }

    def test_no_generation_config_when_nothing_set(self):
        assert "generationConfig" not in GoogleAdapter().transform_request(request())

    def test_tool_round_trip_messages(self):
        chat = ChatRequest.model_validate({
            "model": "gemini-1.5-flash",
            "messages": [
                {"role": "user", "content": "Weather in Oslo?"},
                {"role": "assistant", "content": None, "tool_calls": [{
                    "id": "call_abc",
                    "type": "function",
                    "function": {"name": "get_weather", "arguments": '{"city": "Oslo"}'},
                }]},
                {"role": "tool", "tool_call_id": "call_abc", "content": '{"temp": 4}'},
                {"role": "tool", "tool_call_id": "call_abc", "content": "sunny"},
            ],
        })

        contents = GoogleAdapter().transform_request(chat)["contents"]

        assert contents[1] == {
            "role": "model",
            "parts": [{"functionCall": {"name": "get_weather", "args": {"city": "Oslo"}}}],
        }
        assert contents[2] == {
            "role": "user",
            "parts": [{"functionResponse": {"name": "get_weather", "response": {"temp": 4}}}],
        }
        assert contents[3]["parts"][0]["functionResponse"]["response"] == {"content": "sunny"}

    def test_tool_result_without_matching_call(self):
        chat = ChatRequest.model_validate({
            "model": "gemini-1.5-flash",
            "messages": [{"role": "tool", "tool_call_id": "call_x", "name": "lookup", "content": "[1, 2]"}],
        })

        part = GoogleAdapter().transform_request(chat)["contents"][0]["parts"][0]

        assert part == {"functionResponse": {"name": "lookup", "response": {"content": "[1, 2]"}}}


class TestGoogleEndpoint:

    def test_chat_url_embeds_resolved_model(self):
        adapter = GoogleAdapter(models=[ModelConfig(id="gemini-1.5-flash-002", alias="flash")])

        url = adapter.get_endpoint_url("chat", request=request("flash"))

        assert url == "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash-002:generateContent"

    def test_unknown_model_used_verbatim(self):
        url = GoogleAdapter().get_endpoint_url("chat", request=request("gemini-exp-1206"))

        assert url.endswith("/models/gemini-exp-1206:generateContent")

    def test_streaming_url(self):
        url = GoogleAdapter().get_endpoint_url("chat", request=request(stream=True))

        assert url.endswith("/models/gemini-1.5-flash:streamGenerateContent?alt=sse")

    def test_auth_header(self):
        assert GoogleAdapter().get_auth_headers("g-key") == {"x-goog-api-key": "g-key"}


class TestGoogleResponse:

    def test_response_and_usage(self):
        response = GoogleAdapter().transform_response({
            "candidates": [{
                "content": {"role": "model", "parts": [{"text": "Hel"}, {"text": "lo"}]},
                "finishReason": "STOP",
            }],
            "usageMetadata": {"promptTokenCount": 4, "candidatesTokenCount": 2, "totalTokenCount": 6},
        }, request())

        assert response.id.startswith("google-")
        assert response.model == "gemini-1.5-flash"
        assert response.get_content() == "Hello"
        assert response.choices[0].finish_reason == "stop"
        assert response.usage.prompt_tokens == 4
        assert response.usage.completion_tokens == 2
        assert response.usage.total_tokens == 6

    def test_finish_reasons(self):
        adapter = GoogleAdapter()
        for native, unified in [("MAX_TOKENS", "length"), ("SAFETY", "content_filter"), ("OTHER", "stop")]:
            response = adapter.transform_response({"candidates": [{"content": {"parts": []}, "finishReason": native}]})
            assert response.choices[0].finish_reason == unified

    def test_empty_candidates(self):
        response = GoogleAdapter().transform_response({})

        assert response.get_content() == ""
        assert response.choices[0].finish_reason == "stop"
        assert response.usage is None

    def test_function_call_parts(self):
        response = GoogleAdapter().transform_response({
            "candidates": [{
                "content": {"parts": [{"functionCall": {"name": "lookup", "args": {"q": "x"}}}]},
                "finishReason": "STOP",
            }],
        })

        call = response.choices[0].message.tool_calls[0]
        assert call.function["name"] == "lookup"
        assert json.loads(call.function["arguments"]) == {"q": "x"}
        assert response.choices[0].finish_reason == "tool_calls"


class TestGoogleStream:

    def test_text_chunk(self):
        chunk = GoogleAdapter().transform_stream_chunk(json.dumps({
            "candidates": [{"content": {"parts": [{"text": "Hi"}]}}],
        }), request())

        assert chunk.delta_text == "Hi"
        assert chunk.choices[0].finish_reason is None

    def test_terminal_chunk(self):
        chunk = GoogleAdapter().transform_stream_chunk(json.dumps({
            "candidates": [{"content": {"parts": []}, "finishReason": "MAX_TOKENS"}],
        }))

        assert chunk.delta_text == ""
        assert chunk.choices[0].finish_reason == "length"

    def test_metadata_only_event_ignored(self):
        assert GoogleAdapter().transform_stream_chunk(json.dumps({"usageMetadata": {"totalTokenCount": 3}})) is None

    def test_function_call_chunk(self):
        chunk = GoogleAdapter().transform_stream_chunk(json.dumps({
            "candidates": [{
                "content": {"parts": [{"functionCall": {"name": "lookup", "args": {"q": "x"}}}]},
                "finishReason": "STOP",
            }],
        }), request())

        delta = chunk.to_dict()["choices"][0]["delta"]
        assert "content" not in delta
        assert delta["tool_calls"] == [{
            "index": 0,
            "id": "call_0",
            "type": "function",
            "function": {"name": "lookup", "arguments": '{"q": "x"}'},
        }]
        assert chunk.choices[0].finish_reason == "tool_calls"

    def test_unexpected_shapes_ignored(self):
        adapter = GoogleAdapter()
        for event in [
            {"candidates": 5},
            {"candidates": ["x"]},
            {"candidates": [{"content": "x"}]},
            {"candidates": [{"content": {"parts": [{"text": 5}]}}]},
            {"candidates": [{"content": {"parts": [{"functionCall": "lookup"}]}}]},
            {"candidates": [{"finishReason": ["STOP"]}]},
        ]:
            assert adapter.transform_stream_chunk(json.dumps(event), request()) is None


class TestGoogleErrors:

    def test_status_becomes_type(self):
        body = GoogleAdapter().normalize_error(
            {"error": {"code": 400, "message": "API key not valid", "status": "INVALID_ARGUMENT"}}
        )

        assert body.to_dict() == {
            "error": {"message": "API key not valid", "type": "INVALID_ARGUMENT", "code": None}
        }
