"""CLI entry point: stream text chunks to an audio file over the WebSocket API."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path


def main() -> None:
    """Stream text to speech and write the audio to a file."""
    parser = argparse.ArgumentParser(
        description="ElevenLabs Stream - WebSocket text-to-speech to a file"
    )
    parser.add_argument("voice_id", help="ElevenLabs voice ID")
    parser.add_argument("chunks", nargs="+", help="Text chunks, streamed in order")
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=Path("output.mp3"),
        help="Audio file to write (default: output.mp3)",
    )
    parser.add_argument("--model-id", default=None, help="Model ID (server default if omitted)")
    parser.add_argument(
        "--output-format",
        default=None,
        help="Output format, e.g. mp3_44100_128 or pcm_24000",
    )
    parser.add_argument("--language-code", default=None, help="ISO 639-1 language code")
    parser.add_argument(
        "--timings",
        action="store_true",
        help="Request alignment and print word timings",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=60.0,
        help="Seconds to wait for the final audio frame (default: 60)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file with ELEVENLABS_API_KEY",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    args = parser.parse_args()
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from .errors import ElevenLabsError

    try:
        asyncio.run(_stream(args))
    except ElevenLabsError as e:
        print(f"  Error: {e.message}", file=sys.stderr)
        sys.exit(1)
    except asyncio.TimeoutError:
        print(f"  Error: no final audio frame within {args.timeout}s", file=sys.stderr)
        sys.exit(1)


async def _stream(args: argparse.Namespace) -> None:
    """Run one bounded single-context session."""
    from .config import ClientConfig
    from .tts import StreamOptions, stream_text_to_speech
    from .tts.protocol import decode_alignment

    config = ClientConfig.from_env(dotenv_path=args.env_file)
    options = StreamOptions(
        model_id=args.model_id,
        output_format=args.output_format,
        language_code=args.language_code,
        sync_alignment=True if args.timings else None,
    )

    audio_parts: list[bytes] = []

    def on_audio(audio: bytes, alignment: dict | None) -> None:
        audio_parts.append(audio)
        if args.timings and alignment:
            for word in decode_alignment(alignment).to_words():
                print(f"  {word.start:7.3f}s - {word.end:7.3f}s  {word.text}")

    stream = await stream_text_to_speech(
        args.voice_id,
        args.chunks,
        on_audio,
        config=config,
        options=options,
    )
    try:
        await stream.close_input()
        await stream.wait_done(timeout=args.timeout)
    finally:
        await stream.close()

    audio = b"".join(audio_parts)
    args.output.write_bytes(audio)
    print(f"\n  Wrote {len(audio)} bytes to {args.output}")


if __name__ == "__main__":
    main()
