"""
Example Usage of ComfyUI Client

Demonstrates how to use the ComfyUI client to:
- Connect with settings from the environment
- Watch raw WebSocket events
- Run a workflow and wait for its history
- Download and save the output images
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

from comfyui_client import ClientSettings, ComfyUIClient, ComfyUIError, configure_logging


def on_event(event_type, data):
    """Generic event callback: receives raw text messages and errors"""
    if event_type == "message":
        message = json.loads(data)
        if message.get("type") == "progress":
            progress = message["data"]
            print(f"  Progress: {progress['value']}/{progress['max']}")
    elif event_type == "error":
        print(f"  WebSocket error: {data}")


async def main(workflow_path: Path, output_dir: Path) -> int:
    if not workflow_path.exists():
        print(f"Error: {workflow_path} not found")
        print("Export a workflow from ComfyUI using 'Save (API Format)'")
        return 1

    with open(workflow_path) as f:
        workflow = json.load(f)

    settings = ClientSettings.from_env()
    print(f"Connecting to {settings.host} as {settings.client_id}")

    try:
        async with ComfyUIClient.from_settings(settings, event_emitter=on_event) as client:
            stats = await client.get_system_stats()
            print(f"✓ Connected. Devices: {[d.get('name') for d in stats.get('devices', [])]}")

            images = await client.get_images(workflow)
            for node_id, containers in images.items():
                print(f"✓ Node {node_id}: {len(containers)} image(s)")

            for path in client.save_images(images, output_dir):
                print(f"  Saved {path}")

    except ComfyUIError as e:
        print(f"✗ {e}")
        return 1

    return 0


if __name__ == "__main__":
    configure_logging(logging.INFO)
    workflow_file = Path(sys.argv[1] if len(sys.argv) > 1 else "workflow_api.json")
    sys.exit(asyncio.run(main(workflow_file, Path("outputs"))))
