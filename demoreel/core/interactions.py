# Copyright 2026 Firefly Software Solutions Inc
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Scripted page interactions replayed while a screencast is running.

A walkthrough script is an ordered list of steps. The InteractionDriver runs
them one at a time, in order, against a PageController. A failing step is
logged and skipped so a best-effort recording is still produced, unless the
driver runs in strict mode.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from demoreel.core.page import PageController
from demoreel.exceptions import InteractionError
from demoreel.utils.logger import logger


class InteractionStep(ABC):
    """A single action in a walkthrough script."""

    @abstractmethod
    async def run(self, page: PageController) -> None:
        """Execute the step against the page."""

    @abstractmethod
    def describe(self) -> str:
        """Human-readable summary used in logs."""


@dataclass
class WaitStep(InteractionStep):
    milliseconds: int

    async def run(self, page: PageController) -> None:
        await page.wait(self.milliseconds)

    def describe(self) -> str:
        return f"wait {self.milliseconds}ms"


@dataclass
class NavigateStep(InteractionStep):
    url: str
    wait_until: str = "networkidle"
    timeout: int = 10000

    async def run(self, page: PageController) -> None:
        await page.goto(self.url, wait_until=self.wait_until, timeout=self.timeout)

    def describe(self) -> str:
        return f"navigate to {self.url}"


@dataclass
class ClickStep(InteractionStep):
    selector: str
    index: int = 0

    async def run(self, page: PageController) -> None:
        await page.click(self.selector, index=self.index)

    def describe(self) -> str:
        return f"click {self.selector}[{self.index}]"


@dataclass
class TypeStep(InteractionStep):
    selector: str
    text: str

    async def run(self, page: PageController) -> None:
        await page.type(self.selector, self.text)

    def describe(self) -> str:
        return f"type into {self.selector}"


@dataclass
class WaitForSelectorStep(InteractionStep):
    selector: str
    timeout: int = 10000

    async def run(self, page: PageController) -> None:
        await page.wait_for_selector(self.selector, timeout=self.timeout)

    def describe(self) -> str:
        return f"wait for {self.selector}"


@dataclass
class EvaluateStep(InteractionStep):
    script: str
    label: str = "run script"

    async def run(self, page: PageController) -> None:
        await page.evaluate(self.script)

    def describe(self) -> str:
        return self.label


@dataclass
class ScrollStep(InteractionStep):
    position: str = "bottom"

    async def run(self, page: PageController) -> None:
        await page.scroll_to(self.position)

    def describe(self) -> str:
        return f"scroll to {self.position}"


@dataclass
class StepOutcome:
    """Result of one executed step."""

    position: int
    description: str
    ok: bool
    error: Optional[str] = None
    duration_seconds: float = 0.0


@dataclass
class InteractionReport:
    """Per-step outcomes of a walkthrough run."""

    outcomes: List[StepOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded


class InteractionDriver:
    """
    Replays a walkthrough script step by step.

    Attributes:
        page: Page controller the steps act on
        strict: Abort on the first failing step instead of skipping it
        settle_ms: Pause after every step so the recording stays watchable

    Example:
        >>> driver = InteractionDriver(PageController(page), settle_ms=500)
        >>> report = await driver.run(default_walkthrough())
        >>> report.failed
        0
    """

    def __init__(self, page: PageController, strict: bool = False, settle_ms: int = 0) -> None:
        self.page = page
        self.strict = strict
        self.settle_ms = settle_ms

    async def run(self, script: Sequence[InteractionStep]) -> InteractionReport:
        """
        Execute every step in order.

        Returns:
            InteractionReport with one outcome per executed step

        Raises:
            InteractionError: In strict mode, when a step fails
        """
        report = InteractionReport()
        logger.info(f"[INTERACT] Starting walkthrough ({len(script)} steps)")

        for position, step in enumerate(script, start=1):
            description = step.describe()
            started = time.time()
            try:
                await step.run(self.page)
            except Exception as e:
                outcome = StepOutcome(position, description, False, str(e), time.time() - started)
                report.outcomes.append(outcome)
                logger.warning(f"[INTERACT] Step {position}/{len(script)} failed ({description}): {e}")
                if self.strict:
                    raise InteractionError(
                        f"Step {position} ({description}) failed: {e}"
                    ) from e
                continue

            report.outcomes.append(
                StepOutcome(position, description, True, duration_seconds=time.time() - started)
            )
            logger.info(f"[INTERACT] Step {position}/{len(script)}: {description}")

            if self.settle_ms > 0:
                try:
                    await self.page.wait(self.settle_ms)
                except Exception as e:
                    logger.warning(f"[INTERACT] Settle pause after step {position} failed: {e}")

        logger.info(
            f"[INTERACT] Walkthrough finished: {report.succeeded} succeeded, {report.failed} failed"
        )
        return report


_TITLE_SCRIPT = """() => {
  if (!document.querySelector('h1')) {
    const title = document.createElement('h1');
    title.textContent = 'Alchemist Academy';
    title.style.cssText = 'text-align: center; color: #4f46e5; font-size: 3rem; margin: 2rem;';
    document.body.insertBefore(title, document.body.firstChild);
  }
}"""

_EQUATION_PANEL_SCRIPT = """() => {
  const panel = document.createElement('div');
  panel.innerHTML = `
    <div style="text-align: center; margin: 2rem; padding: 2rem; border: 2px solid #4f46e5; border-radius: 10px; background: white;">
      <h2 style="color: #4f46e5;">Equation Duels</h2>
      <p style="font-size: 1.5rem;">Balance this equation:</p>
      <p style="font-size: 2rem; font-family: monospace; background: #f3f4f6; padding: 1rem;">C4H10 + O2 &rarr; CO2 + H2O</p>
      <button id="demoreel-submit" style="background: #10b981; color: white; padding: 0.5rem 1rem; border: none; border-radius: 5px;">Submit Answer</button>
    </div>`;
  document.body.appendChild(panel);
}"""

_FLASHCARD_SCRIPT = """() => {
  const grid = document.createElement('div');
  grid.innerHTML = `
    <div style="text-align: center; margin: 2rem; padding: 2rem; border: 2px solid #7c3aed; border-radius: 10px; background: white;">
      <h2 style="color: #7c3aed;">Memory Labyrinth</h2>
      <div style="display: grid; grid-template-columns: repeat(4, 1fr); gap: 1rem; max-width: 400px; margin: 2rem auto;">
        <div class="demoreel-card" style="background: #fbbf24; padding: 1rem; border-radius: 5px;">H2</div>
        <div class="demoreel-card" style="background: #f87171; padding: 1rem; border-radius: 5px;">CO2</div>
        <div class="demoreel-card" style="background: #60a5fa; padding: 1rem; border-radius: 5px;">NH3</div>
        <div class="demoreel-card" style="background: #34d399; padding: 1rem; border-radius: 5px;">O2</div>
      </div>
    </div>`;
  document.body.appendChild(grid);
}"""


def default_walkthrough() -> List[InteractionStep]:
    """The built-in ten-step demo walkthrough."""
    return [
        WaitStep(2000),
        EvaluateStep(_TITLE_SCRIPT, label="show title"),
        EvaluateStep(_EQUATION_PANEL_SCRIPT, label="show equation duel"),
        WaitStep(2000),
        ClickStep("#demoreel-submit"),
        EvaluateStep(_FLASHCARD_SCRIPT, label="show flashcards"),
        ClickStep(".demoreel-card", index=0),
        ClickStep(".demoreel-card", index=1),
        ScrollStep("top"),
        ScrollStep("bottom"),
    ]
