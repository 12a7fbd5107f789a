"""Evergarden CLI entrypoints."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import replace
from pathlib import Path

from .chat.remix import RemixSession, TurnRole
from .cli_progress import SceneProgress
from .config import EngineSettings
from .engine import EvergardenEngine
from .errors import EvergardenError, InvalidStateError, describe_error
from .generation.batch import SceneJobState, SceneStatus
from .generation.scenes import DEFAULT_STYLE
from .images import ImagePayload
from .utils import load_dotenv

REMIX_HELP = "Type an edit instruction, /save to keep the current image, /quit to abandon."


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="evergarden", description="Stylize a photo across a set of scenes")
    sub = parser.add_subparsers(dest="command")

    generate = sub.add_parser("generate", help="Generate one styled image per scene")
    generate.add_argument("--image", required=True, help="Path to the source photo")
    generate.add_argument("--out", required=True, help="Run output directory")
    generate.add_argument("--events", help="Path to events.jsonl")
    generate.add_argument("--provider", help="Generation provider (gemini, dryrun)")
    generate.add_argument("--image-model", dest="image_model")
    generate.add_argument(
        "--retry-failed",
        dest="retry_failed",
        action="store_true",
        help="Regenerate failed scenes once before exporting",
    )

    remix = sub.add_parser("remix", help="Interactively edit an image")
    remix.add_argument("--image", help="Path to the image to remix (defaults to the scene's image in --out)")
    remix.add_argument("--out", required=True, help="Run output directory")
    remix.add_argument("--scene", help="Scene to remix; saving writes it back into the run")
    remix.add_argument("--events", help="Path to events.jsonl")
    remix.add_argument("--provider", help="Generation provider (gemini, dryrun)")
    remix.add_argument("--image-model", dest="image_model")

    return parser


def _settings_from_args(args: argparse.Namespace) -> EngineSettings:
    settings = EngineSettings.from_env()
    if args.provider:
        settings = replace(settings, provider=args.provider)
    if args.image_model:
        settings = replace(settings, image_model=args.image_model)
    return settings


def _make_engine(args: argparse.Namespace, progress: SceneProgress | None = None) -> EvergardenEngine:
    run_dir = Path(args.out)
    events_path = Path(args.events) if args.events else run_dir / "events.jsonl"
    return EvergardenEngine(run_dir, events_path, settings=_settings_from_args(args), listener=progress)


def _handle_generate(args: argparse.Namespace) -> int:
    try:
        image = ImagePayload.from_path(Path(args.image))
    except (EvergardenError, OSError) as exc:
        print(f"Could not read image: {describe_error(exc)}")
        return 1
    progress = SceneProgress(total=len(DEFAULT_STYLE.scenes))
    try:
        engine = _make_engine(args, progress)
    except EvergardenError as exc:
        print(describe_error(exc))
        return 1
    states = asyncio.run(_run_generate(engine, image, retry_failed=args.retry_failed))
    exported = engine.export()
    done = sum(1 for state in states.values() if state.status is SceneStatus.DONE)
    print(progress.done_line(done))
    for scene, path in exported.items():
        print(f"{scene}: {path}")
    engine.finish(exported)
    return 0 if done == len(states) else 1


async def _run_generate(
    engine: EvergardenEngine,
    image: ImagePayload,
    *,
    retry_failed: bool,
) -> dict[str, SceneJobState]:
    states = await engine.generate_all(image)
    if retry_failed and any(state.status is SceneStatus.FAILED for state in states.values()):
        print("Retrying failed scenes…")
        await engine.regenerate_failed()
    return engine.states


async def _remix_loop(engine: EvergardenEngine, session: RemixSession, out_dir: Path) -> int:
    print(REMIX_HELP)
    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except (EOFError, KeyboardInterrupt):
            break
        command = line.strip()
        if not command:
            continue
        if command == "/help":
            print(REMIX_HELP)
            continue
        if command == "/quit":
            break
        if command == "/save":
            image = engine.save_remix(session)
            path = _write_saved_remix(engine, session.scene, image, out_dir)
            print(f"Saved {path}")
            return 0
        await engine.remix(session, command)
        reply = session.history[-1]
        if reply.role is TurnRole.BOT:
            if reply.text:
                print(reply.text)
            if reply.image is not None:
                print("Image updated.")
    session.discard()
    print("Remix abandoned.")
    return 1


def _write_saved_remix(engine: EvergardenEngine, scene: str | None, image: ImagePayload, out_dir: Path) -> Path:
    path = out_dir / engine.style.filename_for(scene or "remix", image.suffix)
    if scene in engine.states:
        # Replace the scene's earlier export, which may have another suffix.
        for stale in out_dir.glob(f"{path.stem}.*"):
            if stale != path:
                stale.unlink()
    path.write_bytes(image.to_bytes())
    return path


def _open_session(engine: EvergardenEngine, args: argparse.Namespace) -> RemixSession:
    if args.image:
        image = ImagePayload.from_path(Path(args.image))
        return engine.open_remix_from_image(image, scene=args.scene)
    if not args.scene:
        raise InvalidStateError("Pass --image, or --scene to remix a scene from the run in --out.")
    engine.load_run()
    return engine.open_remix(args.scene)


def _handle_remix(args: argparse.Namespace) -> int:
    try:
        engine = _make_engine(args)
        session = _open_session(engine, args)
    except (EvergardenError, OSError) as exc:
        print(describe_error(exc))
        return 1
    code = asyncio.run(_remix_loop(engine, session, engine.run_dir))
    engine.finish()
    return code


def main() -> None:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args()
    if args.command == "generate":
        raise SystemExit(_handle_generate(args))
    if args.command == "remix":
        raise SystemExit(_handle_remix(args))
    parser.print_help()
    raise SystemExit(1)


if __name__ == "__main__":
    main()
