"""
Main entry point — parse args, load config, answer one question.
"""

from __future__ import annotations
import argparse
import asyncio
import logging
import sys
from typing import Optional

from .config.settings import load_settings
from .core.ai import AI
from .core.conversation import Image
from .core.errors import AIError
from .core.structured_logger import setup_structured_logging


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="reasonloop",
        description="Ask a question through the structured generation loop",
    )
    parser.add_argument(
        "question",
        help="Question to answer",
    )
    parser.add_argument(
        "-c", "--config",
        help="Path to config YAML file",
        default=None,
    )
    parser.add_argument(
        "-p", "--provider",
        help="LLM provider (openai, anthropic, deepseek, gemini, groq, openrouter, ollama)",
        default=None,
    )
    parser.add_argument(
        "-m", "--model",
        help="Model name to use",
        default=None,
    )
    parser.add_argument(
        "-t", "--temperature",
        type=float,
        help="Sampling temperature (clamped to [0, 2])",
        default=None,
    )
    parser.add_argument(
        "-i", "--image",
        help="Image file sent along with the question",
        default=None,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG)",
    )
    return parser.parse_args(argv)


async def answer(question: str, image: Optional[Image] = None) -> str:
    """Generate a plain-text answer in the current session."""
    ai = AI.current()
    ai.user_message(question, image)
    return await ai.gen(str)


def main(argv: Optional[list] = None) -> None:
    args = parse_args(argv)

    # Logging level
    if args.verbose >= 2:
        log_level = "DEBUG"
    elif args.verbose >= 1:
        log_level = "INFO"
    else:
        log_level = "WARNING"
    setup_structured_logging(level=log_level)

    logger = logging.getLogger(__name__)

    try:
        settings = load_settings(args.config)

        # Override config with CLI args
        if args.provider:
            settings.set("llm.provider", args.provider)
        if args.model:
            settings.set("llm.model", args.model)
        if args.temperature is not None:
            settings.set("llm.temperature", args.temperature)

        config = settings.to_config()
        logger.info(f"Using {config.provider.name} / {config.model_name}")

        image = Image.from_path(args.image) if args.image else None

        async def run() -> str:
            with AI.run(config):
                return await answer(args.question, image)

        result = asyncio.run(run())
    except AIError as e:
        print(e.full_message(), file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)

    print(result)


if __name__ == "__main__":
    main()
