# run.py
# Entry point. Config and wiring only; no logic lives here.
#
#   code-helper plan src/calc.py -i "add input validation" [--apply] [--yes]
#   code-helper review src/calc.py [--fix security]
#
# The API key is read from OPENROUTER_API_KEY (or a .env file) here and
# nowhere else. Other settings come from CODE_HELPER_* variables.
# https://openrouter.ai/models

import argparse
import asyncio
import os
from pathlib import Path

from dotenv import load_dotenv

from code_helper import display, log
from code_helper.api import (
    FileTextStore,
    apply_changes,
    generate_implementation,
    implement_review_fix,
    plan_steps,
    run_code_review,
    run_pipeline,
)
from code_helper.config import Settings
from code_helper.errors import CodeHelperError
from code_helper.models import REVIEW_ORDER, ReviewAspect, ReviewOutcome


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="code-helper",
        description="Context-aware change planning and code review",
    )
    parser.add_argument("--verbose", action="store_true", help="Show debug diagnostics on stderr")
    parser.add_argument(
        "--project-root",
        help="Directory the inspection tools search. Overrides CODE_HELPER_PROJECT_ROOT.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    plan = commands.add_parser("plan", help="Plan, then generate, a change to one file")
    plan.add_argument("file", help="File to change")
    plan.add_argument("-i", "--instruction", required=True, help="What the change should do")
    plan.add_argument("--apply", action="store_true", help="Generate code and write it to the file")
    plan.add_argument("--yes", action="store_true", help="Apply without asking")

    review = commands.add_parser("review", help="Review one file for bugs, performance, security and clarity")
    review.add_argument("file", help="File to review")
    review.add_argument(
        "--fix",
        choices=[a.value for a in REVIEW_ORDER],
        help="Generate a fix for this aspect's findings",
    )
    return parser


async def _plan(args: argparse.Namespace, settings: Settings, credential: str) -> int:
    store = FileTextStore(args.file)
    code = store.read()
    file_name = str(Path(args.file).resolve())

    display.request_received(args.file, args.instruction)
    response = await run_pipeline(
        code, args.instruction, file_name, credential, display.stage_update, settings=settings
    )
    display.failed_stages(response.failed_stages)

    steps = plan_steps(response)
    display.plan_steps(steps)
    if not args.apply:
        return 0

    display.generating_implementation()
    result = await generate_implementation(
        code, args.instruction, file_name, steps, credential, settings=settings
    )
    display.implementation(result, args.file)

    if args.yes or display.confirm_apply(args.file):
        previous = apply_changes(store, result.new_code)
        display.changes_applied(args.file, len(previous), len(result.new_code))
    else:
        display.changes_skipped()
    return 0


async def _review(args: argparse.Namespace, settings: Settings, credential: str) -> int:
    code = FileTextStore(args.file).read()

    display.review_start(args.file)
    results = await run_code_review(code, args.file, credential, settings=settings)

    if args.fix:
        aspect = ReviewAspect(args.fix)
        index = REVIEW_ORDER.index(aspect)
        if results[index].outcome is ReviewOutcome.ISSUES_FOUND:
            results[index] = await implement_review_fix(
                code, args.file, results[index], credential, settings=settings
            )

    for result in results:
        display.review_result(result)
    display.review_summary(results)
    return 0


def main() -> int:
    load_dotenv()
    args = build_parser().parse_args()
    log.configure(verbose=args.verbose)

    settings = Settings.from_env(load_dotenv_file=False)
    if args.project_root:
        settings = settings.model_copy(update={"project_root": args.project_root})
    credential = os.getenv("OPENROUTER_API_KEY", "")

    display.banner(settings.model, settings.project_root)
    command = _plan if args.command == "plan" else _review
    try:
        return asyncio.run(command(args, settings, credential))
    except (CodeHelperError, OSError) as exc:
        display.halt(exc)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
