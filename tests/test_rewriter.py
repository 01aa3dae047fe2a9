"""Tests for code payload rewriting."""

import json
from unittest.mock import AsyncMock

import pytest

from condenser.config.schema import RewriterConfig
from condenser.messages import Message, Role, TextPart, ToolCallPart, ToolResultPart, assistant, user
from condenser.rewriter import CodeSummary, ContextRewriter, compressed_marker, get_lang_id

BIG_FILE = "\n".join(f"line {i}" for i in range(150))


def read_result(output, cid="r1"):
    return Message(Role.tool, [ToolResultPart(cid, "readFile", output)])


def read_payload(content=BIG_FILE, file_path="src/app.py", **extra):
    return {"success": True, "file_path": file_path, "content": content, **extra}


def summarizer(summary="def main(): ...", success=True):
    return AsyncMock(return_value=CodeSummary(success, summary, 150))


class TestLanguage:
    def test_known_extensions(self):
        assert get_lang_id("a/b/c.py") == "python"
        assert get_lang_id("index.TSX") == "tsx"
        assert get_lang_id("main.rs") == "rust"

    def test_unknown_extension(self):
        assert get_lang_id("README.md") is None
        assert get_lang_id("Makefile") is None

    def test_marker(self):
        assert compressed_marker(150) == "[COMPRESSED: 150 lines → summarized]"


class TestRewriteReadResults:
    @pytest.mark.asyncio
    async def test_plain_dict_rewritten(self):
        code = summarizer()
        rw = ContextRewriter(code)
        out = await rw.rewrite_messages([read_result(read_payload(message="Read 150 lines"))])

        output = out[0].tool_results()[0].output
        assert output["content"] == "def main(): ..."
        assert output["message"] == "Read 150 lines [COMPRESSED: 150 lines → summarized]"
        code.assert_awaited_once_with(BIG_FILE, "python", "src/app.py")

    @pytest.mark.asyncio
    async def test_text_wrapper_shape_preserved(self):
        rw = ContextRewriter(summarizer())
        wrapped = {"type": "text", "value": json.dumps(read_payload())}
        out = await rw.rewrite_messages([read_result(wrapped)])

        output = out[0].tool_results()[0].output
        assert output["type"] == "text"
        payload = json.loads(output["value"])
        assert payload["content"] == "def main(): ..."
        assert payload["message"] == compressed_marker(150)

    @pytest.mark.asyncio
    async def test_json_string_shape_preserved(self):
        rw = ContextRewriter(summarizer())
        out = await rw.rewrite_messages([read_result(json.dumps(read_payload()))])
        output = out[0].tool_results()[0].output
        assert isinstance(output, str)
        assert json.loads(output)["content"] == "def main(): ..."

    @pytest.mark.asyncio
    async def test_below_threshold_untouched(self):
        code = summarizer()
        rw = ContextRewriter(code)
        msg = read_result(read_payload(content="short\nfile"))
        assert await rw.rewrite_messages([msg]) == [msg]
        code.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_custom_threshold(self):
        code = summarizer()
        rw = ContextRewriter(code, RewriterConfig(line_threshold=1))
        await rw.rewrite_messages([read_result(read_payload(content="a\nb"))])
        code.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unsupported_language_untouched(self):
        code = summarizer()
        rw = ContextRewriter(code)
        msg = read_result(read_payload(file_path="notes.md"))
        assert await rw.rewrite_messages([msg]) == [msg]
        code.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_string_content_skipped_without_losing_batch(self):
        code = summarizer()
        rw = ContextRewriter(code)
        odd = read_result(read_payload(content=["line 1", "line 2"]), cid="r1")
        big = read_result(read_payload(), cid="r2")
        out = await rw.rewrite_messages([odd, big])

        assert out[0] == odd
        assert out[1].tool_results()[0].output["content"] == "def main(): ..."
        code.assert_awaited_once_with(BIG_FILE, "python", "src/app.py")

    @pytest.mark.asyncio
    async def test_failed_read_untouched(self):
        rw = ContextRewriter(summarizer())
        msg = read_result({**read_payload(), "success": False})
        assert await rw.rewrite_messages([msg]) == [msg]


class TestRewriteWriteCalls:
    @pytest.mark.asyncio
    async def test_content_replaced_with_marker(self):
        rw = ContextRewriter(summarizer("class App: ..."))
        msg = assistant([
            TextPart("Writing"),
            ToolCallPart("w1", "writeFile", {"file_path": "app.ts", "content": BIG_FILE}),
        ])
        out = await rw.rewrite_messages([msg])

        call = out[0].tool_calls()[0]
        assert call.input == {
            "file_path": "app.ts",
            "content": "class App: ...\n[COMPRESSED: 150 lines → summarized]",
        }
        assert out[0].content[0] == TextPart("Writing")

    @pytest.mark.asyncio
    async def test_json_string_input(self):
        rw = ContextRewriter(summarizer())
        raw = json.dumps({"file_path": "app.go", "content": BIG_FILE})
        out = await rw.rewrite_messages([assistant([ToolCallPart("w1", "writeFile", raw)])])
        assert out[0].tool_calls()[0].input["content"].endswith(compressed_marker(150))


class TestFailOpen:
    @pytest.mark.asyncio
    async def test_no_summarizer_is_passthrough(self):
        rw = ContextRewriter()
        messages = [user("hi"), read_result(read_payload())]
        assert await rw.rewrite_messages(messages) == messages

    @pytest.mark.asyncio
    async def test_disabled_is_passthrough(self):
        code = summarizer()
        rw = ContextRewriter(code, RewriterConfig(enabled=False))
        messages = [read_result(read_payload())]
        assert await rw.rewrite_messages(messages) == messages
        code.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unsuccessful_summary_keeps_original(self):
        rw = ContextRewriter(summarizer(success=False))
        msg = read_result(read_payload())
        assert await rw.rewrite_messages([msg]) == [msg]

    @pytest.mark.asyncio
    async def test_summarizer_exception_keeps_original(self):
        code = AsyncMock(side_effect=RuntimeError("parser crashed"))
        rw = ContextRewriter(code)
        msg = read_result(read_payload())
        assert await rw.rewrite_messages([msg]) == [msg]

    @pytest.mark.asyncio
    async def test_other_tools_untouched(self):
        code = summarizer()
        rw = ContextRewriter(code)
        msg = Message(Role.tool, [ToolResultPart("b1", "bash", BIG_FILE)])
        assert await rw.rewrite_messages([msg]) == [msg]
        code.assert_not_awaited()
