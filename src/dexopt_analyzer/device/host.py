"""
Module: device.host

Purpose:
    Work out the host configuration (locale and screen density) that labels
    should be resolved for.

Key Functions:
    - detect_host_configuration(): Device properties, then process locale

Dependencies:
    - device.commands: getprop
    - apk.configuration: ResourceConfiguration

Used By:
    - cli.main
"""

from __future__ import annotations

import locale
import logging
import os
from typing import Callable, Optional

from dexopt_analyzer.apk.configuration import ResourceConfiguration, parse_locale
from dexopt_analyzer.core.errors import CommandFailed

from .commands import run_command

logger = logging.getLogger(__name__)

LOCALE_PROPERTIES = ("persist.sys.locale", "ro.product.locale")
DENSITY_PROPERTY = "ro.sf.lcd_density"

PropertyReader = Callable[[str], Optional[str]]


def getprop(name: str) -> Optional[str]:
    """Value of a system property, None if unset or getprop is unavailable."""
    try:
        value = run_command(["getprop", name], timeout=10).strip()
    except CommandFailed as e:
        logger.debug(f"getprop {name} failed: {e}")
        return None
    return value or None


def process_locale() -> Optional[str]:
    """Locale of this process from LC_ALL / LC_MESSAGES / LANG or the C library."""
    for var in ("LC_ALL", "LC_MESSAGES", "LANG"):
        value = os.environ.get(var)
        if value and parse_locale(value) is not None:
            return value
    current = locale.getlocale()[0]
    return current if current and parse_locale(current) is not None else None


def detect_host_configuration(
    locale_override: Optional[str] = None,
    density_override: Optional[int] = None,
    *,
    read_property: PropertyReader = getprop,
) -> ResourceConfiguration:
    """
    Host configuration for label selection.

    Order: explicit override, device properties, process locale, default.
    """
    tag = locale_override
    if not tag:
        for prop in LOCALE_PROPERTIES:
            value = read_property(prop)
            if value and parse_locale(value) is not None:
                tag = value
                break
    if not tag:
        tag = process_locale()

    density = density_override or 0
    if not density:
        raw = read_property(DENSITY_PROPERTY)
        if raw and raw.isdigit():
            density = int(raw)

    config = ResourceConfiguration.from_locale(tag, density)
    logger.debug(f"Host configuration: {config}")
    return config
