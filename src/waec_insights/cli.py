"""Terminal chat with the WAEC Insights assistant.

Usage:
    waec-chat
    waec-chat --url "https://waec-insights.onrender.com/chat?q=What%20is%20the%20pass%20rate%3F"
    waec-chat --backend http://localhost:8000 --timeout 120 --trace
    waec-chat --dashboard
"""

import argparse
import asyncio
import logging

from waec_insights.chat import ChatSession
from waec_insights.config import ChatConfig
from waec_insights.deeplink import DeepLinkIntake, extract_question
from waec_insights.events import ChatEvent, TurnCompleteEvent, TurnDeltaEvent, TurnFailedEvent
from waec_insights.transport import ChatTransport, DashboardData

QUIT_COMMANDS = {"/quit", "/exit"}


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s:%(name)s:%(levelname)s:%(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def setup_tracing(service_name: str):
    from opentelemetry import trace
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        SimpleSpanProcessor, ConsoleSpanExporter,
    )
    from waec_insights.instrumentation import instrument

    provider = TracerProvider(
        resource=Resource({SERVICE_NAME: service_name})
    )
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    instrument()


class TerminalPrinter:
    """Writes streamed answers to stdout as they arrive."""

    def __init__(self):
        self._started = False

    def __call__(self, event: ChatEvent) -> None:
        if isinstance(event, TurnDeltaEvent):
            if not self._started:
                print("Assistant: ", end="", flush=True)
                self._started = True
            print(event.content, end="", flush=True)
        elif isinstance(event, TurnFailedEvent):
            if self._started:
                print()
            print(f"Assistant: {event.turn.content}\n")
            self._started = False
        elif isinstance(event, TurnCompleteEvent):
            print("\n")
            self._started = False


def format_dashboard(data: DashboardData) -> str:
    lines = ["Gender trend (pass rate %):"]
    lines += [f"  {p.year}: Male {p.Male}, Female {p.Female}" for p in data.gender_trend]
    lines.append("School performance (pass rate %):")
    lines += [f"  {p.year}: Public {p.Public}, Private {p.Private}" for p in data.school_performance]
    lines.append("Subject performance (pass rate %):")
    lines += [
        f"  {p.year}: English {p.English}, Math {p.Math}, Both {p.Both}"
        for p in data.subject_performance
    ]
    return "\n".join(lines)


async def run(args: argparse.Namespace) -> None:
    config = ChatConfig.from_env(
        backend_url=args.backend, response_timeout=args.timeout,
    )
    async with ChatTransport(config) as transport:
        if args.dashboard:
            print(format_dashboard(await transport.get_dashboard_data()))
            return

        chat = ChatSession(transport, config=config, on_event=TerminalPrinter())
        print("Data Analyst Agent (WAEC 2016-2021)\n")
        for turn in chat.transcript:
            print(f"Assistant: {turn.content}\n")

        question = extract_question(args.url)
        if question is not None:
            print(f"You: {question}")
            await DeepLinkIntake(chat).consume(args.url)

        while True:
            try:
                user_input = input("You: ")
            except (KeyboardInterrupt, EOFError):
                print("\nGoodbye!")
                break
            if user_input.strip() in QUIT_COMMANDS:
                break
            await chat.submit(user_input)
        chat.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Chat with the WAEC dataset assistant")
    parser.add_argument("--backend", default=None, help="Backend base URL")
    parser.add_argument("--url", default=None, help="Chat deep link carrying a ?q= question")
    parser.add_argument("--timeout", type=float, default=None, help="Seconds to wait for a full answer")
    parser.add_argument("--dashboard", action="store_true", help="Print dashboard data and exit")
    parser.add_argument("--trace", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    setup_logging(args.verbose)
    if args.trace:
        setup_tracing("waec-chat")
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
