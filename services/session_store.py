"""In-memory store for chat sessions, their mode and mode settings."""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from models.session_models import (
	PicResolution,
	PicStyle,
	SessionMessage,
	SessionMode,
	SessionSettings,
	SessionState,
	VisionDetail,
	has_system_role,
)

DEFAULT_SESSION_TTL = 12 * 60 * 60
MAX_SWEEP_INTERVAL = 60.0


class _KeyLock:
	def __init__(self) -> None:
		self.lock = threading.Lock()
		self.users = 0


class SessionStore:
	"""Manage per-session history, mode and settings.

	Every operation takes the lock of its own session id only, so calls for
	different sessions never wait on each other. Unknown or expired sessions
	read as defaults. Expired sessions and unused locks are reclaimed by a
	sweep that runs on writes at most every ``sweep_interval`` seconds.
	"""

	def __init__(self, ttl_seconds: float = DEFAULT_SESSION_TTL, sweep_interval: Optional[float] = None) -> None:
		self.ttl_seconds = ttl_seconds
		if sweep_interval is None:
			sweep_interval = min(ttl_seconds, MAX_SWEEP_INTERVAL) if ttl_seconds else 0
		self.sweep_interval = sweep_interval
		self._sessions: Dict[str, SessionState] = {}
		# session id -> (lock, number of callers holding or waiting on it)
		self._locks: Dict[str, _KeyLock] = {}
		self._locks_guard = threading.Lock()
		self._last_sweep = time.time()

	def __len__(self) -> int:
		return len(self._sessions)

	@contextmanager
	def _locked(self, session_id: str) -> Iterator[None]:
		"""Hold the lock of one session id; the lock is dropped once unused."""
		with self._locks_guard:
			entry = self._locks.get(session_id)
			if entry is None:
				entry = _KeyLock()
				self._locks[session_id] = entry
			entry.users += 1
		entry.lock.acquire()
		try:
			yield
		finally:
			entry.lock.release()
			with self._locks_guard:
				entry.users -= 1
				if entry.users == 0 and session_id not in self._sessions:
					del self._locks[session_id]

	def _expired(self, state: SessionState, now: float) -> bool:
		return bool(self.ttl_seconds) and now - state.updated_at > self.ttl_seconds

	def _peek(self, session_id: str) -> Optional[SessionState]:
		"""Return the live state for a session, dropping it once expired."""
		state = self._sessions.get(session_id)
		if state is None:
			return None
		if self._expired(state, time.time()):
			with self._locks_guard:
				self._sessions.pop(session_id, None)
			return None
		return state

	def _get_or_create(self, session_id: str) -> SessionState:
		self._maybe_sweep()
		state = self._peek(session_id)
		if state is None:
			state = SessionState(session_id=session_id)
			with self._locks_guard:
				self._sessions[session_id] = state
		state.updated_at = time.time()
		return state

	def _maybe_sweep(self) -> None:
		if self.sweep_interval and time.time() - self._last_sweep >= self.sweep_interval:
			self.purge_expired()

	def purge_expired(self) -> int:
		"""Drop every expired session that no caller is using; return how many."""
		now = time.time()
		removed = 0
		with self._locks_guard:
			self._last_sweep = now
			for session_id, state in list(self._sessions.items()):
				if not self._expired(state, now):
					continue
				entry = self._locks.get(session_id)
				if entry is not None and entry.users:
					continue
				del self._sessions[session_id]
				self._locks.pop(session_id, None)
				removed += 1
		return removed

	# -- history ---------------------------------------------------------

	def get_messages(self, session_id: str) -> List[SessionMessage]:
		"""Return a copy of the session history in insertion order."""
		with self._locked(session_id):
			state = self._peek(session_id)
			return list(state.messages) if state else []

	def set_messages(self, session_id: str, messages: Iterable[SessionMessage]) -> None:
		"""Replace the session history."""
		with self._locked(session_id):
			self._get_or_create(session_id).messages = list(messages)

	def append_messages(self, session_id: str, messages: Iterable[SessionMessage]) -> List[SessionMessage]:
		"""Append messages to the history and return the resulting history.

		A system message is only kept when the history has none yet, and it
		is then placed first.
		"""
		with self._locked(session_id):
			state = self._get_or_create(session_id)
			for message in messages:
				if message.role == "system":
					if has_system_role(state.messages):
						continue
					state.messages.insert(0, message)
				else:
					state.messages.append(message)
			return list(state.messages)

	def clear(self, session_id: str, reset_mode: bool = False) -> None:
		"""Drop history and mode settings; keep the mode unless asked to reset it."""
		with self._locked(session_id):
			state = self._peek(session_id)
			if state is None:
				return
			state.messages = []
			state.settings = SessionSettings()
			if reset_mode:
				state.mode = SessionMode.CHAT
			state.updated_at = time.time()

	# -- mode ------------------------------------------------------------

	def get_mode(self, session_id: str) -> SessionMode:
		with self._locked(session_id):
			state = self._peek(session_id)
			return state.mode if state else SessionMode.CHAT

	def set_mode(self, session_id: str, mode: SessionMode) -> None:
		"""Switch the session mode; switching always starts an empty history."""
		with self._locked(session_id):
			state = self._get_or_create(session_id)
			state.mode = mode
			state.messages = []

	# -- settings ----------------------------------------------------------

	def get_settings(self, session_id: str) -> SessionSettings:
		with self._locked(session_id):
			state = self._peek(session_id)
			if state is None:
				return SessionSettings()
			settings = state.settings
			return SessionSettings(
				pic_resolution=settings.pic_resolution,
				pic_style=settings.pic_style,
				vision_detail=settings.vision_detail,
				ai_mode=settings.ai_mode,
			)

	def get_pic_resolution(self, session_id: str) -> PicResolution:
		return self.get_settings(session_id).pic_resolution

	def set_pic_resolution(self, session_id: str, resolution: PicResolution) -> None:
		with self._locked(session_id):
			self._get_or_create(session_id).settings.pic_resolution = PicResolution(resolution)

	def get_pic_style(self, session_id: str) -> PicStyle:
		return self.get_settings(session_id).pic_style

	def set_pic_style(self, session_id: str, style: PicStyle) -> None:
		with self._locked(session_id):
			self._get_or_create(session_id).settings.pic_style = PicStyle(style)

	def get_vision_detail(self, session_id: str) -> VisionDetail:
		return self.get_settings(session_id).vision_detail

	def set_vision_detail(self, session_id: str, detail: VisionDetail) -> None:
		with self._locked(session_id):
			self._get_or_create(session_id).settings.vision_detail = VisionDetail(detail)

	def get_ai_mode(self, session_id: str) -> float:
		return self.get_settings(session_id).ai_mode

	def set_ai_mode(self, session_id: str, temperature: float) -> None:
		with self._locked(session_id):
			self._get_or_create(session_id).settings.ai_mode = float(temperature)
