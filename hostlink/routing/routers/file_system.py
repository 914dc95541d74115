#!/usr/bin/env python3

"""
File System Routes

Browse, upload and download files in the host's storage. File contents
travel base64 encoded in ``fileData``; uploads accept either bare base64 or
a data URL ("data:<mime>;base64,<payload>"), downloads always return a data
URL.
"""

import base64
import binascii
import logging
import mimetypes

from ...host import HostServices
from ..router import Operation, Router, replies_to
from ._common import require, unwrap

logger = logging.getLogger(__name__)


def decode_file_data(file_data: str) -> bytes:
    """Bytes of a base64 string or base64 data URL"""
    if file_data.startswith("data:"):
        _, _, file_data = file_data.partition(",")
    try:
        return base64.b64decode(file_data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 file data: {e}") from e


def encode_data_url(data: bytes, filename: str) -> str:
    mime_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def create_file_system_router(services: HostServices) -> Router:
    router = Router("fileSystemRouter")
    files = services.files

    @router.route(Operation.GET_FILE_SYSTEM)
    @replies_to("file-system-result", success=False)
    async def get_file_system(payload, context):
        path = payload.get("path") or ""
        recursive = bool(payload.get("recursive"))
        logger.info(f"Received get file system request: path={path!r} recursive={recursive}")

        entries = unwrap(await files.browse(path, recursive=recursive))
        context.reply(
            "file-system-result",
            success=True,
            path=path,
            results=[entry.to_dict() for entry in entries],
            recursive=recursive
        )

    @router.route(Operation.UPLOAD_FILE)
    @replies_to("upload-file-result", success=False)
    async def upload_file(payload, context):
        logger.info(f"Received upload file request: {payload.get('path')}/{payload.get('filename')}")
        require(payload, "path", "filename")

        file_data = payload.get("fileData")
        if not isinstance(file_data, str) or not file_data:
            raise ValueError("Missing file data (fileData is required)")

        stored = unwrap(await files.upload(
            payload["path"],
            payload["filename"],
            decode_file_data(file_data),
            overwrite=bool(payload.get("overwrite"))
        ))
        context.reply("upload-file-result", success=True, path=stored)

    @router.route(Operation.DOWNLOAD_FILE)
    @replies_to("download-file-result", success=False)
    async def download_file(payload, context):
        logger.info(f"Received download file request: {payload.get('path')}")
        require(payload, "path")

        path = payload["path"]
        data = unwrap(await files.download(path))
        filename = path.rstrip("/").split("/")[-1] or "file"
        context.reply(
            "download-file-result",
            success=True,
            path=path,
            filename=filename,
            fileData=encode_data_url(data, filename),
            mimeType=mimetypes.guess_type(filename)[0] or "application/octet-stream"
        )

    return router
