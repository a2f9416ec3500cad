"""
Session state machine.

A SessionState is an immutable snapshot tagged with its status. Every change
goes through one of the transition functions below, which return a complete
new snapshot, so there is never a half-updated state to observe.

    EMPTY --stage--> STAGED --begin_analysis--> ANALYZING --resolve--> RESOLVED
                                                          \\--fail----> FAILED
    RESOLVED/FAILED --stage/begin_analysis--> STAGED/ANALYZING
    any --clear--> EMPTY

`generation` increases whenever the set of images changes. An analysis is
started with `pending = generation` and its completion carries that token
back; see `resolve` for how stale completions are handled.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence, Tuple

from .errors import ImageNotFound, InvalidTransition
from .intake import StagedImage
from .schema import TimestampedAnalysis


class SessionStatus(str, Enum):
    EMPTY = "empty"
    STAGED = "staged"
    ANALYZING = "analyzing"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionState:
    status: SessionStatus = SessionStatus.EMPTY
    images: Tuple[StagedImage, ...] = ()
    result: Optional[TimestampedAnalysis] = None
    error: Optional[str] = None
    generation: int = 0
    pending: Optional[int] = None

    @property
    def loading(self) -> bool:
        return self.status is SessionStatus.ANALYZING


def _settled(images: Tuple[StagedImage, ...], error: Optional[str]) -> SessionStatus:
    if not images:
        return SessionStatus.EMPTY
    return SessionStatus.FAILED if error else SessionStatus.STAGED


def empty(generation: int = 0) -> SessionState:
    return SessionState(generation=generation)


def stage(state: SessionState, new_images: Sequence[StagedImage]) -> SessionState:
    images = state.images + tuple(new_images)
    status = SessionStatus.ANALYZING if state.pending is not None else SessionStatus.STAGED
    return replace(
        state, status=status, images=images, result=None, error=None,
        generation=state.generation + 1,
    )


def intake_failed(state: SessionState, message: str) -> SessionState:
    status = SessionStatus.ANALYZING if state.pending is not None else _settled(state.images, message)
    return replace(state, status=status, result=None, error=message)


def begin_analysis(state: SessionState) -> SessionState:
    if state.status is SessionStatus.ANALYZING:
        raise InvalidTransition("分析は既に実行中です。")
    if not state.images:
        raise InvalidTransition("分析する画像がありません。")
    return replace(
        state, status=SessionStatus.ANALYZING, result=None, error=None,
        pending=state.generation,
    )


def is_current(state: SessionState, token: int) -> bool:
    return state.pending == token


def resolve(state: SessionState, token: int, result: TimestampedAnalysis) -> SessionState:
    """
    Land a successful analysis.

    A completion whose token is no longer pending (session cleared or a newer
    run started) leaves the state untouched. If images were added or removed
    while the call was in flight, the result describes a different image set
    and is dropped; the session settles back to STAGED/EMPTY.
    """
    if not is_current(state, token):
        return state
    if state.generation != token:
        return replace(state, status=_settled(state.images, state.error), pending=None)
    return replace(
        state, status=SessionStatus.RESOLVED, result=result, error=None, pending=None,
    )


def fail(state: SessionState, token: int, message: str) -> SessionState:
    if not is_current(state, token):
        return state
    if state.generation != token:
        return replace(state, status=_settled(state.images, state.error), pending=None)
    return replace(
        state, status=SessionStatus.FAILED, result=None, error=message, pending=None,
    )


def remove(state: SessionState, image_id: str) -> Tuple[SessionState, StagedImage]:
    """Drop one image; any result is invalidated, the error is kept"""
    for image in state.images:
        if image.id == image_id:
            break
    else:
        raise ImageNotFound(image_id)

    images = tuple(i for i in state.images if i.id != image_id)
    if state.pending is not None:
        status = SessionStatus.ANALYZING
    else:
        status = _settled(images, state.error)
    new_state = replace(
        state, status=status, images=images, result=None, generation=state.generation + 1,
    )
    return new_state, image


def clear(state: SessionState) -> SessionState:
    return empty(generation=state.generation + 1)
