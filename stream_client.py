import asyncio
import json
import mimetypes
import os
import sys

import httpx


async def run(audio_path, url="http://localhost:8000/api/transcribe/stream"):
    mime_type = mimetypes.guess_type(audio_path)[0] or "audio/mpeg"
    with open(audio_path, "rb") as f:
        files = {"audio": (os.path.basename(audio_path), f, mime_type)}
        async with httpx.AsyncClient(timeout=None) as client:
            async with client.stream("POST", url, files=files) as resp:
                if resp.status_code != 200:
                    body = await resp.aread()
                    print(f"HTTP {resp.status_code}: {body.decode(errors='replace')}")
                    return

                async for line in resp.aiter_lines():
                    if not line.strip():
                        continue
                    event = json.loads(line)
                    if event["type"] == "progress":
                        print(f"[{event['percentComplete']:5.1f}%] {event['message']}")
                    elif event["type"] == "complete":
                        print(json.dumps(event["data"], indent=2, ensure_ascii=False))
                    else:
                        print(f"Error: {event['error']}")

    print("\nDone.")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("usage: python stream_client.py AUDIO_FILE [URL]")
        sys.exit(1)
    asyncio.run(run(*sys.argv[1:3]))
