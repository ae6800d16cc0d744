"""Batch translation of JSON locale files powered by Gemini."""

from __future__ import annotations

import argparse
import json
import logging
import os
import re
import sys
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, TextIO, Tuple

from dotenv import find_dotenv, load_dotenv
from google import genai
from google.genai import types
from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

__version__ = "1.0.0"

# --- CONFIGURATION ---
DEFAULT_CONFIG_PATH = "localiser.json"
DEFAULT_MODEL = "gemini-2.5-flash"

DEFAULT_TEMPERATURE = 0.0

API_KEY_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY")
PROGRESS_BAR_WIDTH = 15

TranslateFn = Callable[[Dict[str, Any], str], Dict[str, Any]]
ConfirmFn = Callable[[str], str]

LANGUAGE_NAMES = {
    "ar": "Arabic",
    "bg": "Bulgarian",
    "cs": "Czech",
    "da": "Danish",
    "de": "German",
    "el": "Greek",
    "en": "English",
    "es": "Spanish",
    "fi": "Finnish",
    "fr": "French",
    "he": "Hebrew",
    "hi": "Hindi",
    "hu": "Hungarian",
    "id": "Indonesian",
    "it": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "nl": "Dutch",
    "no": "Norwegian",
    "pl": "Polish",
    "pt": "Portuguese",
    "pt-br": "Brazilian Portuguese",
    "ro": "Romanian",
    "ru": "Russian",
    "sv": "Swedish",
    "th": "Thai",
    "tr": "Turkish",
    "uk": "Ukrainian",
    "vi": "Vietnamese",
    "zh": "Chinese (Simplified)",
    "zh-tw": "Chinese (Traditional)",
}


def get_language_name(code: str) -> str:
    """Return the English name for a language code, or the code itself."""
    normalized = code.strip().lower().replace("_", "-")
    return LANGUAGE_NAMES.get(normalized, code)


class ConfigError(Exception):
    """Raised when the project configuration cannot be loaded."""


@dataclass(frozen=True)
class LocaliserConfig:
    directory: Path
    source_language: str
    languages: Tuple[str, ...]
    namespaces: Tuple[str, ...]


def _string_list(data: Dict[str, Any], key: str) -> Tuple[str, ...]:
    value = data.get(key)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"'{key}' must be a list of strings")
    return tuple(value)


def load_config(path: Path) -> LocaliserConfig:
    """Read the project configuration (``localiser.json``).

    Any problem reading or validating the file raises :class:`ConfigError`;
    there are no defaults for the required keys.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {path}")
    except OSError as exc:
        raise ConfigError(f"Unable to read {path}: {exc}")
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}")

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")

    directory = data.get("directory")
    if not isinstance(directory, str) or not directory:
        raise ConfigError("'directory' must be a non-empty string")
    source_language = data.get("sourceLanguage")
    if not isinstance(source_language, str) or not source_language:
        raise ConfigError("'sourceLanguage' must be a non-empty string")

    return LocaliserConfig(
        directory=Path(directory),
        source_language=source_language,
        languages=_string_list(data, "languages"),
        namespaces=_string_list(data, "namespaces"),
    )


# --- Prompt ---
@dataclass(frozen=True)
class PromptConfig:
    """Holds the prompt template for translation requests."""

    template: str

    def build(self, document: Dict[str, Any], target_lang: str) -> str:
        return self.template.format(
            target_lang=target_lang,
            input_json=json.dumps(document, ensure_ascii=False, indent=2),
        )


DEFAULT_PROMPT_CONFIG = PromptConfig(
    template=(
        "Translate the following JSON object to {target_lang}. "
        "Keep all keys exactly the same and translate only the string values. "
        "Preserve any placeholders like {{0}}, {{1}}, {{count}}, etc. exactly as they are.\n"
        "\n"
        "Input JSON:\n"
        "{input_json}\n"
        "\n"
        "Return the translated JSON object with the same structure."
    ),
)


def build_translation_prompt(
    document: Dict[str, Any],
    target_lang: str,
    prompt_config: PromptConfig = DEFAULT_PROMPT_CONFIG,
) -> str:
    return prompt_config.build(document, get_language_name(target_lang))


# --- Gemini ---
def setup_gemini(api_key: str) -> genai.Client:
    """Create a Google GenAI client (google-genai SDK)."""
    return genai.Client(api_key=api_key)


def clean_json_response(text: str) -> str:
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def translate_json(
    client: genai.Client,
    document: Dict[str, Any],
    target_lang: str,
    model: str = DEFAULT_MODEL,
    prompt_config: PromptConfig = DEFAULT_PROMPT_CONFIG,
) -> Dict[str, Any]:
    """Translate one locale document with a single request.

    Failures are logged and reported as an empty mapping so the caller can
    count the file as failed and move on.
    """
    prompt = build_translation_prompt(document, target_lang, prompt_config)
    try:
        response = client.models.generate_content(
            model=model,
            contents=prompt,
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                temperature=DEFAULT_TEMPERATURE,
            ),
        )
    except Exception as exc:
        logging.error("Translation error for %s: %s", target_lang, exc)
        return {}

    response_text = getattr(response, "text", None)
    if not response_text:
        logging.error("Translation error for %s: empty response.", target_lang)
        return {}

    cleaned_text = clean_json_response(response_text)
    try:
        translated = json.loads(cleaned_text)
    except json.JSONDecodeError as exc:
        logging.error(
            "Failed to parse translation response: %s. Received text: %s",
            exc,
            cleaned_text[:120],
        )
        return {}

    if not isinstance(translated, dict):
        logging.error(
            "Translation response for %s is %s, expected a JSON object.",
            target_lang,
            type(translated).__name__,
        )
        return {}
    return translated


# --- Files ---
def get_file_path(directory: Path, namespace: str) -> Path:
    file_name = namespace if namespace.endswith(".json") else f"{namespace}.json"
    return Path(directory) / file_name


def atomic_write(data: bytes, output: Path) -> None:
    temp_path = output.with_name(output.name + ".tmp")
    try:
        with temp_path.open("wb") as fp:
            fp.write(data)
            fp.flush()
            os.fsync(fp.fileno())
        os.replace(temp_path, output)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise


def write_locale_file(document: Dict[str, Any], output: Path) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    serialized = json.dumps(document, ensure_ascii=False, indent=2) + "\n"
    atomic_write(serialized.encode("utf-8"), output)


def process_namespace_file(
    source_dir: Path,
    target_dir: Path,
    file_name: str,
    translate: TranslateFn,
) -> bool:
    """Translate one namespace file; return whether a target file was written."""
    source_path = get_file_path(source_dir, file_name)
    target_path = get_file_path(target_dir, file_name)

    if not source_path.exists():
        logging.debug("Source file missing: %s", source_path)
        return False

    try:
        source_content = json.loads(source_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logging.error("Unable to read %s: %s", source_path, exc)
        return False

    translated = translate(source_content, Path(target_dir).name)
    if not translated:
        return False

    try:
        write_locale_file(translated, target_path)
    except OSError as exc:
        logging.error("Unable to write %s: %s", target_path, exc)
        return False
    return True


# --- Terminal output ---
_COLORS = {
    "reset": "\x1b[0m",
    "bright": "\x1b[1m",
    "red": "\x1b[31m",
    "green": "\x1b[32m",
    "yellow": "\x1b[33m",
    "blue": "\x1b[34m",
    "magenta": "\x1b[35m",
    "cyan": "\x1b[36m",
    "gray": "\x1b[90m",
}
_TAG_RE = re.compile(r"<(\w+)>(.*?)</\1>", re.DOTALL)


def supports_color(stream: Optional[TextIO] = None) -> bool:
    """Return whether the stream likely supports ANSI colors."""
    if os.getenv("NO_COLOR") is not None:
        return False
    stream = stream if stream is not None else sys.stdout
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def colorize(text: str, bright: bool = False, enabled: bool = True) -> str:
    """Render ``<color>text</color>`` tags as ANSI sequences (or strip them)."""

    def repl(match: re.Match[str]) -> str:
        color, content = match.group(1), match.group(2)
        if not enabled:
            return content
        bright_code = _COLORS["bright"] if bright else ""
        color_code = _COLORS.get(color, _COLORS["reset"])
        return f"{bright_code}{color_code}{content}{_COLORS['reset']}"

    return _TAG_RE.sub(repl, text)


def log(text: str, bright: bool = False, file: Optional[TextIO] = None) -> None:
    stream = file if file is not None else sys.stdout
    tqdm.write(colorize(text, bright, enabled=supports_color(stream)), file=stream)


@dataclass
class Tally:
    total: int = 0
    completed: int = 0
    failed: int = 0

    @property
    def processed(self) -> int:
        return self.completed + self.failed


@dataclass
class RunStats:
    languages: Tally = field(default_factory=Tally)
    namespaces: Tally = field(default_factory=Tally)


class ProgressRenderer:
    """Two stacked progress bars (languages, namespaces) drawn from run counters."""

    BAR_FORMAT = (
        "{desc}: [{bar:%d}] {n_fmt}/{total_fmt} ({percentage:3.0f}%%){postfix}"
        % PROGRESS_BAR_WIDTH
    )

    def __init__(self, disable: bool = False, file: Optional[TextIO] = None):
        self.disable = disable
        self.file = file
        self._bars: List[Tuple[tqdm, str]] = []

    def _make_bar(self, desc: str, total: int, position: int) -> tqdm:
        return tqdm(
            total=total,
            desc=desc,
            position=position,
            leave=True,
            ascii="░█",
            colour="green",
            bar_format=self.BAR_FORMAT,
            file=self.file,
            disable=self.disable or total == 0,
        )

    def start(self, stats: RunStats) -> None:
        self._bars = [
            (self._make_bar("Languages", stats.languages.total, 0), "languages"),
            (self._make_bar("Namespaces", stats.namespaces.total, 1), "namespaces"),
        ]

    def update(self, stats: RunStats, language: str, namespace: str) -> None:
        for bar, name in self._bars:
            if bar.disable:
                continue
            tally: Tally = getattr(stats, name)
            bar.n = tally.processed
            bar.set_postfix_str(
                f"{language}/{namespace} failed={tally.failed}", refresh=False
            )
            bar.refresh()

    def close(self) -> None:
        for bar, _ in self._bars:
            bar.close()
        self._bars = []


# --- Orchestration ---
@dataclass(frozen=True)
class RunOptions:
    language: str = ""
    namespaces: Tuple[str, ...] = ()
    assume_yes: bool = False


@dataclass(frozen=True)
class RunResult:
    stats: RunStats
    languages: Tuple[str, ...]
    namespaces: Tuple[str, ...]
    invalid_namespaces: Tuple[str, ...] = ()
    aborted: bool = False


def resolve_languages(config: LocaliserConfig, language: str = "") -> List[str]:
    if language:
        return [language]
    return [lang for lang in config.languages if lang != config.source_language]


def validate_namespaces(
    config: LocaliserConfig, requested: Optional[Sequence[str]]
) -> Tuple[List[str], List[str]]:
    """Split requested namespaces into (valid, invalid), keeping request order."""
    if not requested:
        return list(config.namespaces), []
    valid: List[str] = []
    invalid: List[str] = []
    for namespace in requested:
        if namespace in config.namespaces:
            valid.append(namespace)
        else:
            invalid.append(namespace)
    return valid, invalid


def prompt_user(question: str) -> str:
    try:
        answer = input(question)
    except EOFError:
        return ""
    return answer.strip().lower()


def run(
    config: LocaliserConfig,
    options: RunOptions,
    translate: TranslateFn,
    confirm: ConfirmFn = prompt_user,
    renderer: Optional[ProgressRenderer] = None,
) -> RunResult:
    """Translate every (language, namespace) pair and return the tallies."""
    renderer = renderer if renderer is not None else ProgressRenderer()
    languages = resolve_languages(config, options.language)
    namespaces, invalid = validate_namespaces(config, options.namespaces)

    log("<cyan>🚀 Starting translation process...</cyan>", bright=True)
    log(
        f"<blue>📝 Source:</blue> <bright>{config.source_language}</bright> "
        f"<yellow>→</yellow> <cyan>Target:</cyan> <green>{', '.join(languages)}</green>"
    )

    if invalid:
        log(f"<red>⚠️  Invalid namespaces: {', '.join(invalid)}</red>")
        log(f"<yellow>Available namespaces: {', '.join(config.namespaces)}</yellow>")
        if options.assume_yes:
            choice = "yes"
        else:
            choice = confirm("❓ Continue with valid namespaces only? (y/n): ").strip().lower()
        if choice not in ("y", "yes"):
            log("<red>❌ Operation cancelled by user.</red>")
            return RunResult(
                stats=RunStats(),
                languages=tuple(languages),
                namespaces=tuple(namespaces),
                invalid_namespaces=tuple(invalid),
                aborted=True,
            )
        log("<green>✅ Continuing with valid namespaces...</green>")

    log(f"<magenta>📁 Namespaces:</magenta> <green>{', '.join(namespaces)}</green>")

    stats = RunStats()
    stats.languages.total = len(languages)
    stats.namespaces.total = len(languages) * len(namespaces)
    source_dir = config.directory / config.source_language

    renderer.start(stats)
    try:
        for language in languages:
            skip_reason = None
            if language not in config.languages:
                skip_reason = f"Unsupported language: {language}"
            elif language == config.source_language:
                skip_reason = f"Skipping {language}: it is the source language"
            if skip_reason:
                log(f"<red>{skip_reason}</red>")
                stats.languages.failed += 1
                stats.namespaces.failed += len(namespaces)
                renderer.update(stats, language, "skipped")
                continue

            target_dir = config.directory / language
            language_ok = True
            for namespace in namespaces:
                renderer.update(stats, language, namespace)
                if process_namespace_file(source_dir, target_dir, namespace, translate):
                    stats.namespaces.completed += 1
                else:
                    stats.namespaces.failed += 1
                    language_ok = False
                    logging.warning("Failed to translate %s/%s", language, namespace)

            if language_ok:
                stats.languages.completed += 1
            else:
                stats.languages.failed += 1
            renderer.update(stats, language, "completed")
    finally:
        renderer.close()

    log("<green>🎉 Translation process completed!</green>", bright=True)
    log(
        f"<gray>Languages: {stats.languages.completed}/{stats.languages.total} completed, "
        f"{stats.languages.failed} failed | Namespaces: {stats.namespaces.completed}/"
        f"{stats.namespaces.total} completed, {stats.namespaces.failed} failed</gray>"
    )
    return RunResult(
        stats=stats,
        languages=tuple(languages),
        namespaces=tuple(namespaces),
        invalid_namespaces=tuple(invalid),
    )


# --- CLI ---
def parse_namespace_list(value: str) -> List[str]:
    return [namespace.strip() for namespace in value.split(",") if namespace.strip()]


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="localiser",
        description="AI-powered internationalization tool",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-l",
        "--language",
        default="",
        help="Target language (e.g., fr, de). Defaults to every configured language except the source.",
    )
    parser.add_argument(
        "-n",
        "--namespace",
        type=parse_namespace_list,
        default=None,
        help="Comma-separated namespaces to translate (e.g., home,common).",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path(DEFAULT_CONFIG_PATH),
        help="Path to configuration file.",
    )
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Continue with valid namespaces without asking when some are invalid.",
    )
    parser.add_argument("--model", default=DEFAULT_MODEL)
    parser.add_argument(
        "--api-key",
        default=None,
        help="Gemini API key. Defaults to GEMINI_API_KEY or GOOGLE_API_KEY (a .env file is honoured).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def resolve_api_key(explicit: Optional[str] = None) -> Optional[str]:
    if explicit:
        return explicit
    for name in API_KEY_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    return None


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    load_dotenv(find_dotenv(usecwd=True))

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        log(f"<red>Error loading project config: {exc}</red>")
        return 1

    api_key = resolve_api_key(args.api_key)
    if not api_key:
        log(f"<red>Missing API key: set {' or '.join(API_KEY_ENV_VARS)} or pass --api-key.</red>")
        return 1

    client = setup_gemini(api_key)
    options = RunOptions(
        language=args.language,
        namespaces=tuple(args.namespace or ()),
        assume_yes=args.yes,
    )

    try:
        with logging_redirect_tqdm():
            run(config, options, translate=partial(translate_json, client, model=args.model))
    except KeyboardInterrupt:
        log("\n<red>❌ Interrupted.</red>")
        return 130
    except Exception as exc:
        logging.debug("Unhandled error", exc_info=True)
        log(f"<red>Unhandled error: {exc}</red>")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
