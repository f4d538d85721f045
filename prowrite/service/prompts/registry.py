"""Static registry of module instruction templates."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Mapping

from prowrite.service.errors import UnsupportedModuleError
from prowrite.service.prompts.cold_email import COLD_EMAIL_PROMPT
from prowrite.service.prompts.hr_docs import HR_DOCS_PROMPT
from prowrite.service.prompts.software_docs import SOFTWARE_DOCS_SYSTEM_PROMPT
from prowrite.service.prompts.website_copy import WEBSITE_COPY_PROMPT
from prowrite.service.prompts.youtube_scripts import YOUTUBE_SCRIPTS_PROMPT


@dataclass(frozen=True)
class PromptConfig:
    module_type: str
    display_name: str
    system_prompt: str


# Built once at import; read-only afterwards
MODULE_PROMPTS: Mapping[str, PromptConfig] = MappingProxyType(
    {
        cfg.module_type: cfg
        for cfg in (
            PromptConfig("cold_email", "Cold Email Expert", COLD_EMAIL_PROMPT),
            PromptConfig("hr_docs", "HR Documents Expert", HR_DOCS_PROMPT),
            PromptConfig(
                "youtube_scripts", "YouTube Scripts Expert", YOUTUBE_SCRIPTS_PROMPT
            ),
            PromptConfig("website_copy", "Website Copy Expert", WEBSITE_COPY_PROMPT),
            PromptConfig(
                "software_docs",
                "Software Documentation Expert",
                SOFTWARE_DOCS_SYSTEM_PROMPT,
            ),
        )
    }
)


def get_prompt_config(module_type: str) -> PromptConfig:
    try:
        return MODULE_PROMPTS[module_type]
    except KeyError:
        raise UnsupportedModuleError(module_type) from None


def get_system_prompt(module_type: str) -> str:
    return get_prompt_config(module_type).system_prompt


def is_valid_module(module_type: str) -> bool:
    return module_type in MODULE_PROMPTS


def available_modules() -> List[PromptConfig]:
    return list(MODULE_PROMPTS.values())
