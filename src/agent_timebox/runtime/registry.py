"""Backend availability snapshot, selection, and task-fit scoring."""

from __future__ import annotations

import logging
import shlex
import shutil
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from agent_timebox.config import AUTO_BACKEND, BACKEND_PRIORITY, Settings
from agent_timebox.runtime.errors import NoBackendAvailable
from agent_timebox.runtime.models import BackendDescriptor

logger = logging.getLogger(__name__)

BASE_SCORE = 50
HIGH_PRIORITY_BONUS = 20
AI_CATEGORY_BONUS = 15
MANY_STEPS_BONUS = 10
MANY_STEPS_THRESHOLD = 10
AI_CATEGORY = "ai_integration"


@dataclass(slots=True)
class TaskDescriptor:
    """Heuristic inputs for backend scoring."""

    priority: str = "Medium"
    category: str = ""
    steps: list[Any] = field(default_factory=list)


class BackendRegistry:
    """Resolve backend ids against an availability snapshot taken once up front."""

    def __init__(
        self,
        descriptors: Iterable[BackendDescriptor],
        *,
        available: Iterable[str],
        default_backend: str = AUTO_BACKEND,
        priority: tuple[str, ...] = BACKEND_PRIORITY,
    ) -> None:
        self._descriptors: dict[str, BackendDescriptor] = {
            descriptor.backend_id: descriptor for descriptor in descriptors
        }
        self._available = frozenset(available)
        self.default_backend = default_backend
        self.priority = tuple(
            backend_id for backend_id in priority if backend_id in self._descriptors
        ) + tuple(backend_id for backend_id in self._descriptors if backend_id not in priority)

    @classmethod
    def probe(
        cls,
        descriptors: Iterable[BackendDescriptor],
        *,
        default_backend: str = AUTO_BACKEND,
        priority: tuple[str, ...] = BACKEND_PRIORITY,
        which: Callable[[str], str | None] = shutil.which,
    ) -> BackendRegistry:
        """Build a registry after checking every backend executable on PATH."""

        descriptor_list = list(descriptors)
        available: list[str] = []
        for descriptor in descriptor_list:
            executable = command_executable(descriptor.command_template)
            resolved = which(executable) if executable else None
            if resolved is None:
                logger.info(
                    "Backend %s not detected (executable=%r)",
                    descriptor.backend_id,
                    executable,
                )
                continue
            logger.info("Backend %s detected at %s", descriptor.backend_id, resolved)
            available.append(descriptor.backend_id)
        return cls(
            descriptor_list,
            available=available,
            default_backend=default_backend,
            priority=priority,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        which: Callable[[str], str | None] = shutil.which,
    ) -> BackendRegistry:
        descriptors = [
            BackendDescriptor.from_settings(backend_id, backend)
            for backend_id, backend in settings.backends.items()
        ]
        return cls.probe(descriptors, default_backend=settings.default_backend, which=which)

    @property
    def descriptors(self) -> Mapping[str, BackendDescriptor]:
        return dict(self._descriptors)

    def descriptor(self, backend_id: str) -> BackendDescriptor:
        try:
            return self._descriptors[backend_id]
        except KeyError as error:
            raise NoBackendAvailable(backend_id) from error

    def is_available(self, backend_id: str) -> bool:
        if backend_id == AUTO_BACKEND:
            return bool(self._available)
        return backend_id in self._available

    def is_usable(self, backend_id: str) -> bool:
        descriptor = self._descriptors.get(backend_id)
        return descriptor is not None and descriptor.enabled and self.is_available(backend_id)

    def usable_backends(self) -> list[str]:
        """Enabled and installed backend ids in priority order."""

        return [backend_id for backend_id in self.priority if self.is_usable(backend_id)]

    def select_backend(self, preferred: str | None = None) -> BackendDescriptor:
        """Return a concrete usable backend for `preferred`, the default, or `auto`."""

        selector = (preferred or self.default_backend).strip().lower()
        if selector != AUTO_BACKEND:
            if self.is_usable(selector):
                return self._descriptors[selector]
            raise NoBackendAvailable(selector)

        if self.default_backend != AUTO_BACKEND and self.is_usable(self.default_backend):
            return self._descriptors[self.default_backend]
        for backend_id in self.priority:
            if self.is_usable(backend_id):
                logger.info("Auto-selected backend %s", backend_id)
                return self._descriptors[backend_id]
        raise NoBackendAvailable(selector)

    def score_backend(self, backend_id: str, task: TaskDescriptor) -> int:
        score = BASE_SCORE
        if task.priority == "High" and backend_id == "claude":
            score += HIGH_PRIORITY_BONUS
        if task.category == AI_CATEGORY and backend_id == "gemini":
            score += AI_CATEGORY_BONUS
        if len(task.steps) > MANY_STEPS_THRESHOLD and backend_id == "claude":
            score += MANY_STEPS_BONUS
        return score

    def select_best(self, task: TaskDescriptor) -> BackendDescriptor:
        """Pick the highest scoring usable backend; ties keep priority order."""

        best_id: str | None = None
        best_score = -1
        for backend_id in self.usable_backends():
            score = self.score_backend(backend_id, task)
            if score > best_score:
                best_id, best_score = backend_id, score
        if best_id is None:
            return self.select_backend(self.default_backend)
        return self._descriptors[best_id]


def command_executable(command_template: str) -> str | None:
    """Return the program name a command template would launch."""

    try:
        argv = shlex.split(command_template)
    except ValueError:
        return None
    return argv[0] if argv else None
