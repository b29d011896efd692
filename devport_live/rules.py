from __future__ import annotations
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

import yaml

from .models import FrameworkInfo, PortRecord
from .utils.path import to_abs_path

logger = logging.getLogger(__name__)


@dataclass
class FrameworkRule:
    pattern: str
    name: str
    display_name: str
    icon: str = ""
    color: str = ""
    _regex: Optional[re.Pattern] = field(default=None, init=False, repr=False, compare=False)

    @property
    def regex(self) -> re.Pattern:
        if self._regex is None:
            self._regex = re.compile(self.pattern, re.IGNORECASE)
        return self._regex

    def info(self) -> FrameworkInfo:
        return FrameworkInfo(name=self.name, display_name=self.display_name,
                             icon=self.icon, color=self.color)


# first match wins, so more specific patterns go first
DEFAULT_RULES: list[FrameworkRule] = [
    # JavaScript / Node.js
    FrameworkRule(r"webpack.*dev.*server|webpack-dev-server", "webpack", "Webpack Dev Server", "⚡", "#8DD6F9"),
    FrameworkRule(r"\bvite\b", "vite", "Vite Dev Server", "⚡", "#646CFF"),
    FrameworkRule(r"next.*dev|next-dev", "nextjs", "Next.js Dev Server", "▲", "#000000"),
    FrameworkRule(r"react-scripts.*start", "cra", "Create React App", "⚛", "#61DAFB"),
    FrameworkRule(r"vue-cli-service.*serve", "vue", "Vue Dev Server", "🟢", "#42B883"),
    FrameworkRule(r"ng.*serve|angular.*cli", "angular", "Angular Dev Server", "🅰", "#DD0031"),
    FrameworkRule(r"nuxt.*dev", "nuxt", "Nuxt.js Dev Server", "💚", "#00DC82"),
    FrameworkRule(r"gatsby.*develop", "gatsby", "Gatsby Dev Server", "🟣", "#663399"),
    FrameworkRule(r"svelte.*dev|svelte-kit", "svelte", "SvelteKit Dev Server", "🔥", "#FF3E00"),
    FrameworkRule(r"remix.*dev", "remix", "Remix Dev Server", "💿", "#000000"),
    FrameworkRule(r"astro.*dev", "astro", "Astro Dev Server", "🚀", "#FF5D01"),
    # Python
    FrameworkRule(r"manage\.py.*runserver|django.*runserver", "django", "Django Dev Server", "🐍", "#092E20"),
    FrameworkRule(r"flask.*run|python.*flask", "flask", "Flask Dev Server", "🌶", "#000000"),
    FrameworkRule(r"fastapi|uvicorn", "fastapi", "FastAPI Server", "⚡", "#009688"),
    # Ruby
    FrameworkRule(r"rails.*server|rails.*s\b", "rails", "Rails Server", "💎", "#CC0000"),
    FrameworkRule(r"sinatra", "sinatra", "Sinatra Server", "🎤", "#000000"),
    # PHP
    FrameworkRule(r"php.*-S|php.*artisan.*serve", "php", "PHP Built-in Server", "🐘", "#777BB4"),
    FrameworkRule(r"laravel.*serve", "laravel", "Laravel Dev Server", "🔺", "#FF2D20"),
    # other tooling
    FrameworkRule(r"webpack.*serve|webpack serve", "webpack-serve", "Webpack Serve", "📦", "#8DD6F9"),
    FrameworkRule(r"parcel", "parcel", "Parcel Dev Server", "📦", "#E7A95F"),
    FrameworkRule(r"rollup.*watch|rollup.*-w", "rollup", "Rollup Dev Server", "📦", "#EC4A3F"),
    FrameworkRule(r"http-server|live-server", "http-server", "HTTP Server", "🌐", "#000000"),
    FrameworkRule(r"express", "express", "Express Server", "🚂", "#000000"),
    FrameworkRule(r"nodemon", "nodemon", "Nodemon", "👀", "#76D04B"),
]


def load_rules(path: Optional[str]) -> list[FrameworkRule]:
    """Built-in rules, preceded by any user rules read from a YAML or JSON list."""
    if not path:
        return list(DEFAULT_RULES)
    p = to_abs_path(path)
    if not p or not p.exists():
        logger.warning("framework rules not found: %s", p)
        return list(DEFAULT_RULES)
    txt = p.read_text(encoding="utf-8")
    data = yaml.safe_load(txt) if p.suffix in (".yaml", ".yml") else json.loads(txt)
    extra: list[FrameworkRule] = []
    for r in data or []:
        try:
            rule = FrameworkRule(**r)
            rule.regex  # compile now so a bad pattern is reported at load time
        except (TypeError, re.error) as e:
            logger.warning("skipping framework rule %r: %s", r, e)
            continue
        extra.append(rule)
    logger.info("loaded %d framework rules from %s", len(extra), p)
    return extra + list(DEFAULT_RULES)


def detect_framework(record: PortRecord, rules: list[FrameworkRule]) -> Optional[FrameworkInfo]:
    text = f"{record.cmd} {record.name}"
    for rule in rules:
        if rule.regex.search(text):
            return rule.info()
    return None
