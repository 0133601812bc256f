"""Instruction scripts and agent configuration for the voice provider."""

from dropit.prompts.builder import build_agent_config, build_instruction_script

__all__ = [
    "build_agent_config",
    "build_instruction_script",
]
