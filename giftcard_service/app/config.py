from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml


DEFAULT_CONFIG_FILE_NAME = "config.yaml"
CONFIG_PATH_ENV = "GIFTCARD_CONFIG_PATH"


@dataclass(frozen=True, slots=True)
class GiftCardPolicy:
    """기프트카드 발급/사용 정책.

    금액 단위는 통화의 정수 단위(ILS 기준 셰켈)이다.
    """

    min_amount: int = 100
    max_amount: int = 5000
    currency: str = "ILS"
    validity_years: int = 5
    max_message_length: int = 500
    default_usage_description: str = "שימוש בגיפטקארד"
    code_generation_attempts: int = 5
    default_page_size: int = 20
    max_page_size: int = 100


@dataclass(frozen=True, slots=True)
class AppConfig:
    """giftcard-service 설정 루트."""

    giftcard: GiftCardPolicy


def _find_config_path() -> Path | None:
    """GIFTCARD_CONFIG_PATH 가 있으면 그 파일을, 없으면 cwd 부터 상위로 올라가며 config.yaml 을 찾는다."""

    explicit = os.getenv(CONFIG_PATH_ENV, "").strip()
    if explicit:
        path = Path(explicit)
        if not path.is_file():
            raise RuntimeError(f"{CONFIG_PATH_ENV} points to a missing file: {path}")
        return path

    current = Path.cwd()
    for directory in (current, *current.parents):
        candidate = directory / DEFAULT_CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def _read_int(section: dict[str, Any], key: str, default: int, path: Path) -> int:
    raw = section.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:  # noqa: TRY003
        raise RuntimeError(f"invalid giftcard.{key} in {path}: {raw!r}") from exc
    if value <= 0:
        raise RuntimeError(f"giftcard.{key} must be positive in {path}: {value}")
    return value


def parse_policy(data: dict[str, Any], path: Path) -> GiftCardPolicy:
    """config.yaml 의 giftcard 섹션을 GiftCardPolicy 로 변환한다."""

    section = data.get("giftcard") or {}
    if not isinstance(section, dict):
        raise RuntimeError(f"giftcard section in {path} must be a mapping")

    defaults = GiftCardPolicy()
    min_amount = _read_int(section, "min_amount", defaults.min_amount, path)
    max_amount = _read_int(section, "max_amount", defaults.max_amount, path)
    if min_amount > max_amount:
        raise RuntimeError(
            f"giftcard.min_amount ({min_amount}) exceeds giftcard.max_amount ({max_amount}) in {path}",
        )

    currency = str(section.get("currency") or defaults.currency).strip().upper()
    description = (
        str(
            section.get("default_usage_description")
            or defaults.default_usage_description
        ).strip()
        or defaults.default_usage_description
    )

    return GiftCardPolicy(
        min_amount=min_amount,
        max_amount=max_amount,
        currency=currency,
        validity_years=_read_int(
            section, "validity_years", defaults.validity_years, path
        ),
        max_message_length=_read_int(
            section, "max_message_length", defaults.max_message_length, path
        ),
        default_usage_description=description,
        code_generation_attempts=_read_int(
            section, "code_generation_attempts", defaults.code_generation_attempts, path
        ),
        default_page_size=_read_int(
            section, "default_page_size", defaults.default_page_size, path
        ),
        max_page_size=_read_int(
            section, "max_page_size", defaults.max_page_size, path
        ),
    )


def load_config() -> AppConfig:
    """giftcard-service 설정을 로드한다. config.yaml 이 없으면 기본 정책을 사용한다."""

    path = _find_config_path()
    if path is None:
        return AppConfig(giftcard=GiftCardPolicy())

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise RuntimeError(f"{path} must contain a mapping at the top level")

    return AppConfig(giftcard=parse_policy(data, path))


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    return load_config()
