"""MachineConfig: the knobs the bootstrap hands to the CPU.

Defaults mirror the stock Rize-1 build: a 16-bit word, four general
purpose registers, 2 KiB of memory and a 256x256 framebuffer.
"""

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Union


logger = logging.getLogger(__name__)

MACHINE_WIDTHS = (8, 16, 32, 64, 128)
MAX_GP_REGISTERS = 26
MAX_DISPLAY_SIZE = 256


@dataclass
class MachineConfig:
    """Static machine configuration.

    Attributes:
        word_width: Bit width of registers and memory cells
        gp_registers: Number of general purpose registers (ga, gb, ...)
        memory_capacity: Number of addressable memory cells
        display_width: Framebuffer width in pixels
        display_height: Framebuffer height in pixels
        autostep_lines: Cycles executed per AutoStep tick
        max_cycles: Safety limit for CPU.run()
        trace_limit: Trace entries kept (0 disables tracing)
    """
    word_width: int = 16
    gp_registers: int = 4
    memory_capacity: int = 2048
    display_width: int = 256
    display_height: int = 256
    autostep_lines: int = 20
    max_cycles: int = 10000
    trace_limit: int = 10000

    def validate(self) -> "MachineConfig":
        """Check every field and return self.

        Raises:
            ValueError: If any field is out of range
        """
        if self.word_width not in MACHINE_WIDTHS:
            raise ValueError(
                f"word_width must be one of {MACHINE_WIDTHS}, got {self.word_width}"
            )
        if not 1 <= self.gp_registers <= MAX_GP_REGISTERS:
            raise ValueError(
                f"gp_registers must be between 1 and {MAX_GP_REGISTERS}, got {self.gp_registers}"
            )
        if self.memory_capacity < 1:
            raise ValueError(f"memory_capacity must be positive, got {self.memory_capacity}")
        for name in ("display_width", "display_height"):
            value = getattr(self, name)
            if not 1 <= value <= MAX_DISPLAY_SIZE:
                raise ValueError(f"{name} must be between 1 and {MAX_DISPLAY_SIZE}, got {value}")
        if self.autostep_lines < 1:
            raise ValueError(f"autostep_lines must be positive, got {self.autostep_lines}")
        if self.max_cycles < 1:
            raise ValueError(f"max_cycles must be positive, got {self.max_cycles}")
        if self.trace_limit < 0:
            raise ValueError(f"trace_limit must not be negative, got {self.trace_limit}")
        return self

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MachineConfig":
        """Build a validated config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))
        values = {}
        for key in known & set(data):
            value = data[key]
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"Config key {key!r} must be an integer, got {value!r}")
            values[key] = value
        return cls(**values).validate()

    def replace(self, **overrides: Any) -> "MachineConfig":
        """Return a validated copy with the non-None overrides applied."""
        data = self.to_dict()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return MachineConfig.from_dict(data)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def load_config(path: Union[str, Path]) -> MachineConfig:
    """Load a MachineConfig from a JSON file.

    Raises:
        ValueError: If the file is not a JSON object or a field is invalid
        OSError: If the file cannot be read
    """
    text = Path(path).read_text()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    logger.info("Loaded machine config from %s", path)
    return MachineConfig.from_dict(data)
