"""Tests for the message model and its dict form."""

import pytest

from condenser.messages import (
    Message,
    Role,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    assistant,
    call_ids,
    message_from_dict,
    message_to_dict,
    messages_from_dicts,
    result_ids,
    user,
)


class TestMessage:
    def test_list_content_becomes_tuple(self):
        msg = Message(Role.assistant, [TextPart("hi")])
        assert msg.content == (TextPart("hi"),)
        assert msg.has_parts

    def test_string_role_is_coerced(self):
        assert Message("user", "hello").role == Role.user

    def test_text_message_has_no_parts(self):
        msg = user("hello")
        assert msg.parts == ()
        assert not msg.has_parts
        assert msg.tool_calls() == []

    def test_tool_calls_and_results(self):
        call = ToolCallPart("c1", "readFile", {"file_path": "a.py"})
        msg = assistant([TextPart("reading"), call])
        assert msg.tool_calls() == [call]
        assert msg.tool_results() == []

    def test_with_parts_returns_new_message(self):
        msg = assistant([TextPart("a"), TextPart("b")])
        trimmed = msg.with_parts([TextPart("a")])
        assert trimmed.content == (TextPart("a"),)
        assert msg.content == (TextPart("a"), TextPart("b"))
        assert trimmed.role == Role.assistant

    def test_frozen(self):
        msg = user("x")
        with pytest.raises(AttributeError):
            msg.content = "y"


class TestIdSets:
    def test_only_assistant_calls_and_tool_results_count(self):
        messages = [
            assistant([ToolCallPart("c1", "glob")]),
            Message(Role.tool, [ToolResultPart("c1", "glob", [])]),
            Message(Role.user, [ToolCallPart("stray", "glob")]),
        ]
        assert call_ids(messages) == {"c1"}
        assert result_ids(messages) == {"c1"}


class TestDictConversion:
    def test_text_message(self):
        msg = message_from_dict({"role": "user", "content": "hello"})
        assert msg == user("hello")

    def test_parts(self):
        msg = message_from_dict({
            "role": "assistant",
            "content": [
                {"type": "text", "text": "Let me look"},
                {"type": "tool-call", "tool_call_id": "c1", "tool_name": "glob", "input": {"pattern": "*.py"}},
            ],
        })
        assert msg.content == (
            TextPart("Let me look"),
            ToolCallPart("c1", "glob", {"pattern": "*.py"}),
        )

    def test_camel_case_ids(self):
        msg = message_from_dict({
            "role": "tool",
            "content": [{"type": "tool-result", "toolCallId": "c1", "toolName": "glob", "output": ["a.py"]}],
        })
        assert msg.content == (ToolResultPart("c1", "glob", ["a.py"]),)

    def test_json_string_input_is_decoded(self):
        msg = message_from_dict({
            "role": "assistant",
            "content": [{"type": "tool-call", "tool_call_id": "c1", "tool_name": "glob", "input": '{"pattern": "*"}'}],
        })
        assert msg.tool_calls()[0].input == {"pattern": "*"}

    def test_unparseable_input_kept_raw(self):
        msg = message_from_dict({
            "role": "assistant",
            "content": [{"type": "tool-call", "tool_call_id": "c1", "tool_name": "glob", "input": "{broken"}],
        })
        assert msg.tool_calls()[0].input == "{broken"

    def test_unknown_part_type_raises(self):
        with pytest.raises(ValueError):
            message_from_dict({"role": "user", "content": [{"type": "image"}]})

    def test_unknown_role_raises(self):
        with pytest.raises(ValueError):
            message_from_dict({"role": "narrator", "content": "x"})

    def test_to_dict(self):
        msg = Message(Role.tool, [ToolResultPart("c1", "glob", ["a.py"])])
        assert message_to_dict(msg) == {
            "role": "tool",
            "content": [{
                "type": "tool-result",
                "tool_call_id": "c1",
                "tool_name": "glob",
                "output": ["a.py"],
            }],
        }

    def test_none_content(self):
        assert messages_from_dicts([{"role": "assistant", "content": None}])[0].content == ""
