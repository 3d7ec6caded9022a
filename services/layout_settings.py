import json
import logging
import sqlite3
import time

import db

logger = logging.getLogger(__name__)

LAYOUT_RULES_SETTING_KEY = "layout_rules"
UTILIZATION_GRADE_THRESHOLDS_SETTING_KEY = "utilization_grade_thresholds"

DEFAULT_LAYOUT_RULES = {
    "large_min_length": 5.80,
    "large_package_size": 10,
    "small_package_size": 20,
    "floors": 4,
    "rows": 3,
    "min_columns": 3,
    "max_columns": 50,
    "medium_min_length": 2.0,
    "medium_max_ratio": 0.75,
    "near_full_ratio": 0.85,
    "empty_row_epsilon": 0.01,
}
DEFAULT_UTILIZATION_GRADE_THRESHOLDS = {
    "A": 85,
    "B": 70,
    "C": 55,
    "D": 40,
}
CACHE_TTL_SECONDS = 30.0

_LAYOUT_RULES_CACHE = {
    "rules": dict(DEFAULT_LAYOUT_RULES),
    "expires_at": 0.0,
}
_UTILIZATION_GRADE_CACHE = {
    "thresholds": dict(DEFAULT_UTILIZATION_GRADE_THRESHOLDS),
    "expires_at": 0.0,
}

_INT_RULES = {
    "large_package_size",
    "small_package_size",
    "floors",
    "rows",
    "min_columns",
    "max_columns",
}


def _coerce_positive_int(value, default):
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        parsed = int(default)
    return parsed if parsed > 0 else int(default)


def _coerce_non_negative_float(value, default):
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        parsed = float(default)
    return max(parsed, 0.0)


def _coerce_ratio(value, default):
    parsed = _coerce_non_negative_float(value, default)
    if parsed <= 0 or parsed > 1:
        return float(default)
    return parsed


def normalize_layout_rules(raw_value):
    rules = dict(DEFAULT_LAYOUT_RULES)
    if not isinstance(raw_value, dict):
        return rules
    for key, default in DEFAULT_LAYOUT_RULES.items():
        if key not in raw_value:
            continue
        if key in _INT_RULES:
            rules[key] = _coerce_positive_int(raw_value.get(key), default)
        elif key.endswith("_ratio"):
            rules[key] = _coerce_ratio(raw_value.get(key), default)
        else:
            rules[key] = _coerce_non_negative_float(raw_value.get(key), default)

    if rules["max_columns"] < rules["min_columns"]:
        rules["max_columns"] = rules["min_columns"]
    # Near-full packages must stay outside the medium band.
    if rules["near_full_ratio"] < rules["medium_max_ratio"]:
        rules["near_full_ratio"] = rules["medium_max_ratio"]
    return rules


def _normalize_threshold_map(raw_value):
    if not isinstance(raw_value, dict):
        return dict(DEFAULT_UTILIZATION_GRADE_THRESHOLDS)
    thresholds = {}
    ceiling = 101
    # Each grade needs a strictly lower bound than the one before it.
    for grade, default in DEFAULT_UTILIZATION_GRADE_THRESHOLDS.items():
        try:
            value = int(raw_value.get(grade, default))
        except (TypeError, ValueError):
            return dict(DEFAULT_UTILIZATION_GRADE_THRESHOLDS)
        value = min(max(value, 0), ceiling - 1)
        thresholds[grade] = value
        ceiling = max(value, 1)
    return thresholds


def _read_json_setting(key):
    try:
        setting = db.get_planning_setting(key) or {}
    except sqlite3.Error as exc:
        logger.warning("Planning settings unavailable, using defaults for %s: %s", key, exc)
        return None
    raw_text = (setting.get("value_text") or "").strip()
    if not raw_text:
        return None
    try:
        return json.loads(raw_text)
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed planning setting %s", key)
        return None


def invalidate_layout_rules_cache():
    _LAYOUT_RULES_CACHE["expires_at"] = 0.0


def invalidate_utilization_grade_thresholds_cache():
    _UTILIZATION_GRADE_CACHE["expires_at"] = 0.0


def get_layout_rules(force_refresh=False):
    now = time.time()
    if force_refresh:
        invalidate_layout_rules_cache()
    if _LAYOUT_RULES_CACHE["expires_at"] > now:
        return dict(_LAYOUT_RULES_CACHE["rules"])

    rules = normalize_layout_rules(_read_json_setting(LAYOUT_RULES_SETTING_KEY))

    _LAYOUT_RULES_CACHE["rules"] = dict(rules)
    _LAYOUT_RULES_CACHE["expires_at"] = now + CACHE_TTL_SECONDS
    return dict(rules)


def save_layout_rules(raw_value):
    rules = normalize_layout_rules(raw_value)
    db.upsert_planning_setting(LAYOUT_RULES_SETTING_KEY, json.dumps(rules, sort_keys=True))
    invalidate_layout_rules_cache()
    return rules


def get_utilization_grade_thresholds(force_refresh=False):
    now = time.time()
    if force_refresh:
        invalidate_utilization_grade_thresholds_cache()
    if _UTILIZATION_GRADE_CACHE["expires_at"] > now:
        return dict(_UTILIZATION_GRADE_CACHE["thresholds"])

    thresholds = _normalize_threshold_map(
        _read_json_setting(UTILIZATION_GRADE_THRESHOLDS_SETTING_KEY)
    )

    _UTILIZATION_GRADE_CACHE["thresholds"] = dict(thresholds)
    _UTILIZATION_GRADE_CACHE["expires_at"] = now + CACHE_TTL_SECONDS
    return dict(thresholds)


def resolve_rules(rules=None):
    if rules is None:
        return get_layout_rules()
    return normalize_layout_rules(rules)
