"""
Browser Tool — Playwright-driven web browsing exposed as ``browsing_tool``.

The model sends an analysis followed by a batch of operations. Operations run
in order against one persistent page; a failing operation is reported in its
own output and the batch continues. Screenshots cannot travel in a tool
message, so each one is attached to the conversation as an image user
message and its output points there.

Calls are serialized: one batch drives the page at a time.

Usage::

    browser = browser_tool()
    with AI.run() as ai, browser.enable():
        summary = await ai.gen(str, "What is on the front page of example.com?")
"""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..core.ai import AI
from ..core.conversation import Image
from ..core.prompt import Prompt, prompt_text
from ..core.rate_limiter import ConcurrencyMeter
from ..core.tool import Tool
from ..prompts.behavioral_rules import BROWSER_PROMPT, BROWSER_REMINDER, BROWSER_STATUS_HEADER

logger = logging.getLogger(__name__)

TOOL_NAME = "browsing_tool"
TOOL_DESCRIPTION = (
    "A browser automation tool built on Playwright that enables web interaction "
    "through a series of operations."
)
SCREENSHOT_RESULT = "See image below."
NO_PAGE = "No page open."
READABLE_LIMIT = 20_000
LAUNCH_ARGS = ["--no-sandbox", "--disable-dev-shm-usage"]


# ── Operations ───────────────────────────────────────────────────

class Goto(BaseModel):
    op: Literal["goto"] = "goto"
    url: str


class Click(BaseModel):
    op: Literal["click"] = "click"
    selector: str = Field(description="CSS or text selector of the element")


class Fill(BaseModel):
    op: Literal["fill"] = "fill"
    selector: str
    text: str


class Press(BaseModel):
    op: Literal["press"] = "press"
    key: str = Field(description="Key name, e.g. Enter or ArrowDown")


class Scroll(BaseModel):
    op: Literal["scroll"] = "scroll"
    dy: int = Field(600, description="Pixels to scroll; negative scrolls up")


class Back(BaseModel):
    op: Literal["back"] = "back"


class ReadableContent(BaseModel):
    op: Literal["readable_content"] = "readable_content"


class Screenshot(BaseModel):
    op: Literal["screenshot"] = "screenshot"


class GetStatus(BaseModel):
    op: Literal["get_status"] = "get_status"


Op = Annotated[
    Union[Goto, Click, Fill, Press, Scroll, Back, ReadableContent, Screenshot, GetStatus],
    Field(discriminator="op"),
]


class Analysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    needed: str = Field(alias="Let me analyze what information is needed and where to find it")
    compliance: str = Field(alias="Let me reflect on the instructions to ensure compliance")


class BrowserInput(BaseModel):
    analysis: Analysis
    ops: List[Op]


class OpOutput(BaseModel):
    op: Dict[str, Any]
    result: str


# ── Session ──────────────────────────────────────────────────────

class BrowserSession:
    """
    One persistent Playwright page, launched on first use.

    Pass *page* to drive an already open page (or a stand-in with the same
    async methods).
    """

    def __init__(self, page: Any = None, headless: bool = True):
        self._page = page
        self._headless = headless
        self._playwright = None
        self._browser = None

    async def page(self) -> Any:
        if self._page is not None:
            return self._page
        try:
            from playwright.async_api import async_playwright
        except ImportError:
            raise ImportError(
                "playwright is required for the browsing tool. "
                "Install it with: pip install 'reasonloop[browser]' && playwright install chromium"
            )
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self._headless, args=LAUNCH_ARGS,
        )
        self._page = await self._browser.new_page()
        logger.info("Browser launched (headless=%s)", self._headless)
        return self._page

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
        self._browser = None
        self._playwright = None
        self._page = None

    async def status(self) -> str:
        if self._page is None:
            return NO_PAGE
        title = await self._page.title()
        return f"URL: {self._page.url}\nTitle: {title}"

    async def perform(self, op: BaseModel) -> Union[str, Image]:
        """Run one operation. Screenshots come back as PNG images."""
        if isinstance(op, GetStatus):
            return await self.status()
        page = await self.page()
        if isinstance(op, Goto):
            await page.goto(op.url)
            return f"Navigated to {page.url}"
        if isinstance(op, Click):
            await page.click(op.selector)
            return f"Clicked {op.selector}"
        if isinstance(op, Fill):
            await page.fill(op.selector, op.text)
            return f"Filled {op.selector}"
        if isinstance(op, Press):
            await page.keyboard.press(op.key)
            return f"Pressed {op.key}"
        if isinstance(op, Scroll):
            await page.mouse.wheel(0, op.dy)
            return f"Scrolled by {op.dy}px"
        if isinstance(op, Back):
            await page.go_back()
            return f"Back at {page.url}"
        if isinstance(op, ReadableContent):
            text = await page.inner_text("body")
            if len(text) > READABLE_LIMIT:
                text = text[:READABLE_LIMIT] + "\n[truncated]"
            return text
        if isinstance(op, Screenshot):
            return Image.from_bytes(await page.screenshot(), "image/png")
        raise ValueError(f"Unsupported browser operation: {op!r}")


async def run_ops(session: BrowserSession, ops: List[BaseModel]) -> List[OpOutput]:
    """
    Run *ops* in order, recording one output per op.

    An op that raises yields a ``Failure:`` output. Screenshots are added to
    the active session as user messages once the batch is done.
    """
    outputs: List[OpOutput] = []
    images = []
    for op in ops:
        data = op.model_dump(mode="json")
        try:
            result = await session.perform(op)
        except Exception as e:
            logger.warning("Browser op %s failed: %s", data["op"], e)
            outputs.append(OpOutput(op=data, result=f"Failure: {type(e).__name__}: {e}"))
            continue
        if isinstance(result, Image):
            images.append((data, result))
            result = SCREENSHOT_RESULT
        outputs.append(OpOutput(op=data, result=result))

    if images:
        ai = AI.current()
        for data, image in images:
            ai.user_message(json.dumps(data), image)
    return outputs


# ── Tool ─────────────────────────────────────────────────────────

def browser_tool(session: Optional[BrowserSession] = None) -> Tool:
    """Build the browsing tool around *session* (a fresh one by default)."""
    session = session or BrowserSession()
    meter = ConcurrencyMeter(1)

    async def capabilities(ai: AI) -> str:
        return (
            prompt_text(BROWSER_PROMPT) + "\n\n"
            + prompt_text(BROWSER_STATUS_HEADER) + "\n"
            + await session.status()
        )

    async def browse(request: BrowserInput) -> List[OpOutput]:
        async def batch() -> List[OpOutput]:
            # launch failures are fatal, not per-op
            if any(not isinstance(op, GetStatus) for op in request.ops):
                await session.page()
            return await run_ops(session, request.ops)

        return await meter.run(batch)

    return Tool.init(
        BrowserInput,
        TOOL_NAME,
        TOOL_DESCRIPTION,
        Prompt.init(capabilities, prompt_text(BROWSER_REMINDER)),
        output_type=List[OpOutput],
        run=browse,
    )
