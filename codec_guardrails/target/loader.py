"""
Target Loader - Resolve the encoding library the guardrails exercise.
"""

from __future__ import annotations

import importlib
import logging

from codec_guardrails.errors import TargetLoadError
from codec_guardrails.target.base import CodecTarget

logger = logging.getLogger(__name__)

REFERENCE_TARGET = "reference"


def load_target(target: str = REFERENCE_TARGET) -> CodecTarget:
    """Load a codec target.

    Args:
        target: "reference" for the bundled numpy codec, otherwise an
            import path "package.module" or "package.module:attr". The
            resolved object must expose VideoEncoder and VideoFrame.

    Returns:
        CodecTarget wrapping the library's constructors.

    Raises:
        TargetLoadError: If the module cannot be imported or lacks the
            required constructors.
    """
    target = target.strip()
    if not target:
        raise TargetLoadError("Empty target name", target=target)

    if target == REFERENCE_TARGET:
        from codec_guardrails.target.reference import create_target
        return create_target()

    module_name, _, attr = target.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise TargetLoadError(
            f"Cannot import {module_name!r}: {exc}",
            target=target,
        ) from exc

    source = module
    if attr:
        source = getattr(module, attr, None)
        if source is None:
            raise TargetLoadError(
                f"{module_name!r} has no attribute {attr!r}",
                target=target,
            )

    encoder_cls = getattr(source, "VideoEncoder", None)
    frame_cls = getattr(source, "VideoFrame", None)
    missing = [
        name
        for name, value in (("VideoEncoder", encoder_cls), ("VideoFrame", frame_cls))
        if not callable(value)
    ]
    if missing:
        raise TargetLoadError(
            f"{target!r} does not expose {', '.join(missing)}",
            target=target,
            details={"missing": missing},
        )

    logger.info("Loaded codec target %s", target)
    return CodecTarget(
        name=target,
        encoder_factory=encoder_cls,
        frame_factory=frame_cls,
    )
