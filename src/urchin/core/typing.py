"""Shared typing aliases used across modules."""

from typing import Any, TypeAlias

JSONDict: TypeAlias = dict[str, Any]
MessageDict: TypeAlias = dict[str, str]
HistoryTurn: TypeAlias = dict[str, str]
Vector: TypeAlias = list[float]
