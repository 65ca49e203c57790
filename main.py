"""research-stream - Research assistant CLI

Runs one action in-process and streams the answer to the terminal.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from app.agents.research_agent import ResearchAgent
from app.client.consumer import FileDocument, Phase, StreamConsumer, StringDocument
from app.client.markdown import strip_code_fences, text_to_html
from app.models.events import EventType
from app.models.session import ResearchAction, new_stream_id


async def run_action(
    action: ResearchAction,
    consumer: StreamConsumer,
    context: dict | None = None,
    depth: str = "standard",
    model: str | None = None,
) -> Phase:
    """Stream one action into consumer, echoing progress to the terminal."""
    content = consumer.state.selection or consumer.state.source_document
    params = {
        "query": content,
        "topic": content,
        "task": content,
        "context": context,
        "depth": depth,
    }
    print(f"[*] {consumer.state.status}", file=sys.stderr)

    agent = ResearchAgent(model=model, session_id=new_stream_id())
    async for event in agent.stream(action, params):
        consumer.handle_event(event)

        if event.event == EventType.CONTENT:
            print(event.data.get("text", ""), end="", flush=True)
        elif event.event == EventType.TOOL_STATUS:
            print(f"\n[~] {event.data.get('description', '')}", file=sys.stderr)
        elif event.event == EventType.ERROR:
            print(f"\n[!] Error: {event.data.get('message', 'Unknown error')}", file=sys.stderr)
        elif event.event == EventType.DONE:
            print("", flush=True)

    return consumer.phase


def main():
    parser = argparse.ArgumentParser(description="research-stream research assistant")
    parser.add_argument(
        "action",
        choices=[a.value for a in ResearchAction],
        help="Action to run",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--text", "-t", help="Document text to work on")
    source.add_argument("--file", "-f", type=Path, help="Document file to work on")
    parser.add_argument("--selection", "-s", help="Only work on this part of the document")
    parser.add_argument("--depth", default="standard", help="Research depth hint")
    parser.add_argument("--model", "-m", help="Model to use (default: from config)")
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Write the result back into --file (replacing --selection if given)",
    )
    parser.add_argument("--html", action="store_true", help="Print the result as HTML paragraphs")

    args = parser.parse_args()

    if args.apply and not args.file:
        parser.error("--apply requires --file")

    host = FileDocument(args.file) if args.file else StringDocument(args.text)
    consumer = StreamConsumer(host)
    try:
        consumer.start(args.action, args.selection)
    except ValueError as e:
        parser.error(str(e))

    phase = asyncio.run(
        run_action(ResearchAction(args.action), consumer, depth=args.depth, model=args.model)
    )
    if phase != Phase.COMPLETE:
        sys.exit(1)

    if args.html:
        print(text_to_html(strip_code_fences(consumer.state.accumulated_text)))

    if args.apply:
        consumer.apply()
        print(f"[+] Applied result to {args.file}", file=sys.stderr)


if __name__ == "__main__":
    main()
