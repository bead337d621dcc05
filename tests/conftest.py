"""Shared fixtures for pipeline tests."""
import json

import pytest

from autoedit.pipeline.state import SessionState, StateUpdate, SubjectState, UpdateKind

BASE_TIME_MS = 1_600_000_000_000

VALID_GAME = {
    "igt": 0,
    "loading": False,
    "ingame": True,
    "playing": True,
    "pause": False,
    "world": 1,
    "level": 1,
    "door": 1,
    "currentScore": 0,
    "udjatEyeAvailable": False,
}

START_PLAYER = {
    "life": 4,
    "numBombs": 4,
    "numRopes": 4,
    "hasAnkh": False,
    "hasKapala": False,
    "isPoisoned": False,
    "isCursed": False,
}


def record(kind: str, seconds: float, game=None, player=None) -> dict:
    data = {"type": kind, "time": BASE_TIME_MS + int(seconds * 1000)}
    if game is not None:
        data["game"] = game
    if player is not None:
        data["player0"] = player
    return data


def keyframe(seconds: float = 0.0, game=None, player=None) -> dict:
    return record("Keyframe", seconds, {**VALID_GAME, **(game or {})}, {**START_PLAYER, **(player or {})})


def delta(seconds: float, game=None, player=None) -> dict:
    return record("Delta", seconds, game, player)


def to_log(records) -> str:
    return "\n".join(json.dumps(r) for r in records) + "\n"


def make_update(kind=UpdateKind.DELTA, seconds=0.0, session=None, subject=None) -> StateUpdate:
    return StateUpdate(
        kind=kind,
        timestamp=BASE_TIME_MS / 1000 + seconds,
        session=SessionState(**(session or {})),
        subject=SubjectState(**(subject or {})),
    )


@pytest.fixture
def valid_session_kwargs():
    return {
        "igt": 0,
        "loading": False,
        "ingame": True,
        "playing": True,
        "pause": False,
        "world": 1,
        "level": 1,
        "door": 1,
        "current_score": 0,
        "udjat_eye_available": False,
    }


@pytest.fixture
def start_subject_kwargs():
    return {
        "life": 4,
        "num_bombs": 4,
        "num_ropes": 4,
        "has_ankh": False,
        "has_kapala": False,
        "is_poisoned": False,
        "is_cursed": False,
    }


@pytest.fixture
def life_rule_doc():
    """Rule document scoring life lost, one point per heart."""
    return {
        "maxMergeTime": 2.0,
        "categories": [
            {
                "events": ["Player.life"],
                "filter": "Decrease",
                "scoreType": "Linear",
                "score": 1.0,
                "beforeTime": 3.0,
                "afterTime": 2.0,
            }
        ],
    }
