"""Convert voice messages (Opus in Ogg) to MP3 files the transcriber accepts."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import aiofiles

LOGGER = logging.getLogger(__name__)


class TranscodeError(RuntimeError):
	"""Raised when ffmpeg cannot convert an audio file."""


class AudioTranscoder:
	"""Run ffmpeg on temporary files to transcode audio attachments."""

	def __init__(self, ffmpeg_bin: str = "ffmpeg", work_dir: Optional[str] = None) -> None:
		self.ffmpeg_bin = ffmpeg_bin
		self.work_dir = work_dir or tempfile.gettempdir()

	async def _run_ffmpeg(self, source: str, target: str) -> None:
		try:
			proc = await asyncio.create_subprocess_exec(
				self.ffmpeg_bin, "-y", "-loglevel", "error", "-i", source, target,
				stdout=asyncio.subprocess.DEVNULL,
				stderr=asyncio.subprocess.PIPE,
			)
		except FileNotFoundError as exc:
			raise TranscodeError(f"ffmpeg executable not found: {self.ffmpeg_bin}") from exc
		_, stderr = await proc.communicate()
		if proc.returncode != 0:
			message = (stderr or b"").decode("utf-8", "replace").strip()
			raise TranscodeError(f"ffmpeg exited with {proc.returncode}: {message}")

	@asynccontextmanager
	async def mp3_file(self, ogg_bytes: bytes, name: Optional[str] = None) -> AsyncIterator[str]:
		"""Yield the path of an MP3 transcoded from ``ogg_bytes``.

		Both the temporary source and the MP3 are removed on exit.
		"""
		if not ogg_bytes:
			raise TranscodeError("Audio attachment is empty.")
		stem = os.path.join(self.work_dir, name or uuid.uuid4().hex)
		source = f"{stem}.ogg"
		target = f"{stem}.mp3"
		try:
			async with aiofiles.open(source, "wb") as f:
				await f.write(ogg_bytes)
			await self._run_ffmpeg(source, target)
			yield target
		finally:
			for path in (source, target):
				if os.path.exists(path):
					try:
						os.remove(path)
					except OSError as exc:
						LOGGER.warning("Could not remove temporary audio file %s: %s", path, exc)
