"""
Tests for input, file, network and storage nodes.
"""

from io import BytesIO

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp import test_utils
from PIL import Image

from agentflow.core.data_types import MediaBlob, VariableType
from agentflow.core.interaction import (
    ConfirmationAction,
    ConfirmationKind,
    ConfirmationResult,
    ScriptedConfirmationHandler,
)
from agentflow.core.workflow import Workflow
from agentflow.nodes.io.network import HttpRequestError, fetch
from agentflow.nodes.io.storage import storage_name_for


def png_bytes():
    buffer = BytesIO()
    Image.new("RGB", (2, 2), "blue").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest_asyncio.fixture
async def server():
    """Local HTTP server with a few canned routes."""
    received = []

    async def echo_json(request):
        body = await request.json() if request.can_read_body else None
        received.append(body)
        return web.json_response({"method": request.method, "body": body})

    async def text(request):
        return web.Response(text="plain words")

    async def image(request):
        return web.Response(body=png_bytes(), content_type="image/png")

    async def missing(request):
        return web.Response(status=404, text="nope")

    app = web.Application()
    app.router.add_route("*", "/echo", echo_json)
    app.router.add_get("/notes.txt", text)
    app.router.add_get("/img/cat.png", image)
    app.router.add_get("/missing", missing)

    test_server = test_utils.TestServer(app)
    await test_server.start_server()
    test_server.received = received
    yield test_server
    await test_server.close()


class TestTextInput:

    @pytest.mark.asyncio
    async def test_configured_text_with_template(self, workflow):
        workflow.variables.create("name", VariableType.STRING, "Ada")
        node = workflow.add_node("text-input", {"text": "Hi {{ name }}"})
        result = await workflow.execute(node.id)
        assert result.outputs == {"text": "Hi Ada"}

    @pytest.mark.asyncio
    async def test_input_replaces_configured_text(self, workflow):
        upstream = workflow.add_node("text-input", {"text": "from upstream"})
        node = workflow.add_node("text-input", {"text": "configured"})
        workflow.connect(upstream.id, "text", node.id, "input")
        await workflow.execute(upstream.id)
        result = await workflow.execute(node.id)
        assert result.outputs == {"text": "from upstream"}


class TestOptionalInput:

    @pytest.mark.asyncio
    async def test_answer_is_used(self, registry):
        handler = ScriptedConfirmationHandler([ConfirmationResult(ConfirmationAction.CONFIRM, "typed")])
        workflow = Workflow(registry=registry, confirmation=handler)
        node = workflow.add_node("optional-input", {"prompt": "Name?", "defaultText": "anon", "timeout": 5})

        result = await workflow.execute(node.id)

        assert result.outputs == {"text": "typed"}
        request = handler.seen[0]
        assert request.kind is ConfirmationKind.INPUT
        assert request.title == "Name?"
        assert request.value == "anon"
        assert request.timeout_ms == 5000
        assert request.node_id == node.id

    @pytest.mark.asyncio
    async def test_timeout_falls_back_to_default(self, registry):
        handler = ScriptedConfirmationHandler([ConfirmationResult(ConfirmationAction.TIMEOUT)])
        workflow = Workflow(registry=registry, confirmation=handler)
        node = workflow.add_node("optional-input", {"defaultText": "anon"})
        assert (await workflow.execute(node.id)).outputs == {"text": "anon"}

    @pytest.mark.asyncio
    async def test_without_handler_uses_default(self, workflow):
        node = workflow.add_node("optional-input", {"defaultText": "anon"})
        assert (await workflow.execute(node.id)).outputs == {"text": "anon"}


class TestFileNodes:

    @pytest.mark.asyncio
    async def test_read_text_file(self, workflow, tmp_path):
        path = tmp_path / "notes.md"
        path.write_text("# Notes\nline", encoding="utf-8")
        node = workflow.add_node("file-input", {"path": str(path)})

        result = await workflow.execute(node.id)

        assert result.outputs == {"content": "# Notes\nline", "filename": "notes.md"}
        assert workflow.variables.get("FileInput1").type is VariableType.LARGE_TEXT

    @pytest.mark.asyncio
    async def test_missing_file(self, workflow, tmp_path):
        node = workflow.add_node("file-input", {"path": str(tmp_path / "absent.txt")})
        result = await workflow.execute(node.id)
        assert "File not found" in str(result.error)

    @pytest.mark.asyncio
    async def test_binary_file_is_rejected(self, workflow, tmp_path):
        path = tmp_path / "blob.bin"
        path.write_bytes(b"\xff\xfe\xfa\x00\x81")
        node = workflow.add_node("file-input", {"path": str(path)})
        result = await workflow.execute(node.id)
        assert not result.ok

    @pytest.mark.asyncio
    async def test_write_and_append(self, workflow, tmp_path):
        node = workflow.add_node("file-output", {
            "filename": "out.txt",
            "directory": str(tmp_path / "nested"),
            "content": "first",
        })
        result = await workflow.execute(node.id)
        path = tmp_path / "nested" / "out.txt"
        assert result.outputs == {"path": str(path)}

        node.config.update({"append": True, "content": "+second"})
        await workflow.execute(node.id)
        assert path.read_text(encoding="utf-8") == "first+second"

    @pytest.mark.asyncio
    async def test_write_media(self, workflow, tmp_path):
        workflow.variables.create("picture", VariableType.IMAGE, MediaBlob(b"\x89PNG-data", "image/png"))
        node = workflow.add_node("file-output", {"filename": "pic.png", "directory": str(tmp_path)})
        workflow.configure_bindings(node.id, input_mappings={"content": "picture"})

        await workflow.execute(node.id)

        assert (tmp_path / "pic.png").read_bytes() == b"\x89PNG-data"


class TestStorageNodes:

    def test_storage_name_for(self):
        assert storage_name_for("My Report (final).pdf") == "My_Report_final"
        assert storage_name_for("2024-data.csv") == "file_2024_data"
        assert storage_name_for("", "download") == "download"

    @pytest.mark.asyncio
    async def test_upload_text_then_read(self, workflow, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("stored words", encoding="utf-8")
        upload = workflow.add_node("file-upload", {"path": str(path)})

        result = await workflow.execute(upload.id)

        assert result.outputs == {"storageName": "notes", "type": "string", "size": 12}
        assert workflow.variables.get("notes").value == "stored words"

        reader = workflow.add_node("storage-reader", {"storageName": "notes"})
        read = await workflow.execute(reader.id)
        assert read.outputs == {"content": "stored words", "type": "string", "size": 12}

    @pytest.mark.asyncio
    async def test_upload_image_replaces_text_variable(self, workflow, tmp_path):
        path = tmp_path / "photo.png"
        path.write_bytes(png_bytes())
        workflow.variables.create("photo", VariableType.STRING, "placeholder", "Team photo")
        upload = workflow.add_node("file-upload", {"path": str(path)})

        result = await workflow.execute(upload.id)

        assert result.outputs["type"] == "image"
        variable = workflow.variables.get("photo")
        assert variable.type is VariableType.IMAGE
        assert variable.description == "Team photo"
        assert variable.value.metadata["width"] == 2

    @pytest.mark.asyncio
    async def test_storage_name_input(self, workflow, tmp_path):
        path = tmp_path / "a.txt"
        path.write_text("x", encoding="utf-8")
        upload = workflow.add_node("file-upload", {"path": str(path), "storageName": "custom"})
        result = await workflow.execute(upload.id)
        assert result.outputs["storageName"] == "custom"
        assert "custom" in workflow.variables

    @pytest.mark.asyncio
    async def test_reader_missing_variable(self, workflow):
        reader = workflow.add_node("storage-reader", {"storageName": "ghost"})
        assert not (await workflow.execute(reader.id)).ok


class TestNetwork:

    @pytest.mark.asyncio
    async def test_fetch_error_status(self, server):
        with pytest.raises(HttpRequestError) as info:
            await fetch(str(server.make_url("/missing")))
        assert info.value.status == 404

    @pytest.mark.asyncio
    async def test_get_json(self, workflow, server):
        node = workflow.add_node("http-request", {"url": str(server.make_url("/echo"))})
        result = await workflow.execute(node.id)
        assert result.outputs == {"response": {"method": "GET", "body": None}, "status": 200}

    @pytest.mark.asyncio
    async def test_post_json_body_from_text(self, workflow, server):
        node = workflow.add_node("http-request", {
            "url": str(server.make_url("/echo")),
            "method": "POST",
            "data": '{"q": "owls"}',
            "headers": '{"X-Test": "1"}',
        })
        result = await workflow.execute(node.id)
        assert result.outputs["response"]["body"] == {"q": "owls"}
        assert server.received == [{"q": "owls"}]

    @pytest.mark.asyncio
    async def test_text_response(self, workflow, server):
        node = workflow.add_node("http-request", {"url": str(server.make_url("/notes.txt"))})
        result = await workflow.execute(node.id)
        assert result.outputs["response"] == "plain words"

    @pytest.mark.asyncio
    async def test_error_status_fails_node(self, workflow, server):
        node = workflow.add_node("http-request", {"url": str(server.make_url("/missing"))})
        result = await workflow.execute(node.id)
        assert "HTTP 404" in str(result.error)

    @pytest.mark.asyncio
    async def test_bad_headers(self, workflow, server):
        node = workflow.add_node("http-request", {"url": str(server.make_url("/echo")), "headers": "[1]"})
        assert not (await workflow.execute(node.id)).ok

    @pytest.mark.asyncio
    async def test_url_loader_binary(self, workflow, server):
        node = workflow.add_node("url-loader", {"url": str(server.make_url("/img/cat.png"))})
        result = await workflow.execute(node.id)

        assert result.outputs["storageName"] == "cat"
        assert result.outputs["type"] == "image"
        blob = workflow.variables.get("cat").value
        assert isinstance(blob, MediaBlob)
        assert blob.filename == "cat.png"
        assert blob.metadata["source_url"].endswith("/img/cat.png")

    @pytest.mark.asyncio
    async def test_url_loader_text_and_forced_binary(self, workflow, server):
        node = workflow.add_node("url-loader", {"url": str(server.make_url("/notes.txt"))})
        await workflow.execute(node.id)
        assert workflow.variables.get("notes").value == "plain words"

        node.config.update({"forceType": "binary", "storageName": "raw_notes"})
        result = await workflow.execute(node.id)
        assert result.outputs["type"] == "document"
        assert workflow.variables.get("raw_notes").value.data == b"plain words"
