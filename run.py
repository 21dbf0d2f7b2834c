"""Command-line entry point for the XStream creative suite."""

from __future__ import annotations

import argparse
import asyncio
import logging
import shutil
import sys
from pathlib import Path

from xstream import CreativeSuite
from xstream.config import SuiteConfig
from xstream.errors import StudioError
from xstream.services.gemini import ConfiguredKeySelector
from xstream.suite import Tool
from xstream.types import GENRES, NO_GENRE, ImageFile
from xstream.utils.images import load_image_file
from xstream.workflows.animator import CredentialStatus
from xstream.workflows.assistant import CreativeAssistantWorkflow
from xstream.workflows.base import BaseWorkflow


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Run one creative workflow headlessly.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    face = subparsers.add_parser("face-swap", help="Put the face from one image onto another.")
    face.add_argument("source", help="Image whose person keeps pose and background.")
    face.add_argument("face", help="Image providing the face.")

    clothing = subparsers.add_parser("clothing-swap", help="Dress a person in another outfit.")
    clothing.add_argument("person", help="Image of the person.")
    clothing.add_argument("clothing", help="Image of the clothing.")

    background = subparsers.add_parser("remove-background", help="Cut out the subject and replace its background.")
    background.add_argument("image", help="Image to cut out.")
    finish = background.add_mutually_exclusive_group()
    finish.add_argument("--prompt", help="Generate a new background from this description.")
    finish.add_argument("--background", help="Composite onto this background image.")
    finish.add_argument("--green-screen", action="store_true", help="Fill the background with solid green.")

    assistant = subparsers.add_parser("assistant", help="Draft a prompt, generate an image and text.")
    assistant.add_argument("topic", help="Short topic or idea.")
    assistant.add_argument("--source", help="Optional source image to build on.")
    assistant.add_argument("--asset", action="append", default=[], help="Reference asset image (repeatable).")
    assistant.add_argument("--genre", default=NO_GENRE, choices=GENRES, help="Music genre used for lyrics and cover art.")
    assistant.add_argument("--lyrics", action="store_true", help="Also write song lyrics.")
    assistant.add_argument("--iterate", action="append", default=[], help="Refinement instruction (repeatable).")

    animate = subparsers.add_parser("animate", help="Animate a character image into a short video.")
    animate.add_argument("image", help="Character image.")
    animate.add_argument("motion", help="Description of the motion.")

    for sub in (face, clothing, background, assistant, animate):
        sub.add_argument("--out", required=True, help="Where to write the resulting artifact.")
    return parser.parse_args(argv)


def write_artifact(ref: str, out: str) -> Path:
    """Write a data URL or a local video reference to ``out``."""
    target = Path(out)
    target.parent.mkdir(parents=True, exist_ok=True)
    if ref.startswith("file://"):
        shutil.copyfile(ref[len("file://"):], target)
    else:
        target.write_bytes(ImageFile.from_data_url(ref).to_bytes())
    return target


async def run_command(args: argparse.Namespace, suite: CreativeSuite) -> BaseWorkflow:
    """Drive the workflow selected by ``args.command`` to completion."""
    if args.command == "face-swap":
        workflow = suite.open(Tool.FACE_SWAP)
        await workflow.generate(load_image_file(args.source), load_image_file(args.face))
    elif args.command == "clothing-swap":
        workflow = suite.open(Tool.CLOTHING_SWAP)
        await workflow.generate(load_image_file(args.person), load_image_file(args.clothing))
    elif args.command == "remove-background":
        workflow = suite.open(Tool.BACKGROUND_REMOVER)
        await workflow.remove_background(load_image_file(args.image))
        if workflow.error is None:
            if args.prompt:
                await workflow.generate_background(args.prompt)
            elif args.background:
                await workflow.upload_background(load_image_file(args.background))
            elif args.green_screen:
                await workflow.apply_green_screen()
    elif args.command == "assistant":
        workflow = suite.open(Tool.CREATIVE_ASSISTANT)
        if args.source:
            workflow.attach_source_image(load_image_file(args.source))
        for path in args.asset:
            workflow.toggle_asset(load_image_file(path))
        workflow.update_controls(genre=args.genre)
        workflow.generate_lyrics = args.lyrics
        await workflow.draft_prompt(args.topic)
        if workflow.error is None:
            await workflow.generate_content()
        for instruction in args.iterate:
            if workflow.error is not None:
                break
            await workflow.iterate(instruction)
    else:
        workflow = suite.open(Tool.CHARACTER_ANIMATOR)
        await workflow.check_credential()
        if workflow.credential_status is not CredentialStatus.SELECTED:
            await workflow.select_credential()
        await workflow.animate(load_image_file(args.image), args.motion)
    return workflow


def main(argv: list[str] | None = None) -> int:
    """Entry point used by ``python run.py``."""
    args = parse_args(argv or sys.argv[1:])
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = SuiteConfig.from_env()
    suite = CreativeSuite(config, credential_selector=ConfiguredKeySelector(config))
    try:
        workflow = asyncio.run(run_command(args, suite))
    except StudioError as exc:
        print(f"Failed: {exc}", file=sys.stderr)
        return 2

    if workflow.error:
        print(f"Failed: {workflow.error}", file=sys.stderr)
        return 1
    if workflow.result is None:
        print("No artifact was produced.", file=sys.stderr)
        return 1

    target = write_artifact(workflow.result, args.out)
    print(f"Artifact written to {target}")
    if isinstance(workflow, CreativeAssistantWorkflow):
        if workflow.text_result:
            print(f"\n{workflow.text_result}")
        if workflow.lyrics_result:
            print(f"\nLyrics:\n{workflow.lyrics_result}")
    print(f"Run logs stored under {suite.logger.base_dir / workflow.session_id}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
