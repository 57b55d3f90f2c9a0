"""Pluggable layout heuristics evaluated on a stabilized page.

Findings are attached to the capture result for the report. They never
change a comparison's pass/fail outcome.
"""

from __future__ import annotations

import logging

from playwright.async_api import Page

from mockup_diff.models.capture import CaptureTask, LayoutFinding

logger = logging.getLogger(__name__)


class LayoutRule:
    """Base class for a layout check. Subclasses set ``rule_id`` and implement ``evaluate``."""

    rule_id = ""
    severity = "warning"

    def applies_to(self, task: CaptureTask) -> bool:
        return True

    async def evaluate(self, page: Page, task: CaptureTask) -> list[LayoutFinding]:
        raise NotImplementedError

    def finding(self, message: str) -> LayoutFinding:
        return LayoutFinding(rule_id=self.rule_id, severity=self.severity, message=message)


class HorizontalOverflowRule(LayoutRule):
    """Flags pages that scroll sideways and the elements that push past the right edge."""

    rule_id = "horizontal-overflow"
    max_elements = 5

    async def evaluate(self, page: Page, task: CaptureTask) -> list[LayoutFinding]:
        data = await page.evaluate("""(limit) => {
            const docWidth = document.documentElement.scrollWidth;
            const viewportWidth = window.innerWidth;
            const offenders = [];
            for (const el of document.querySelectorAll('body *')) {
                const rect = el.getBoundingClientRect();
                if (rect.width > 0 && rect.right > viewportWidth + 1) {
                    const cls = (typeof el.className === 'string' && el.className.trim())
                        ? '.' + el.className.trim().split(/\\s+/).join('.') : '';
                    offenders.push({
                        element: el.tagName.toLowerCase() + (el.id ? '#' + el.id : '') + cls,
                        overflow: Math.round(rect.right - viewportWidth),
                    });
                    if (offenders.length >= limit) break;
                }
            }
            return { docWidth, viewportWidth, offenders };
        }""", self.max_elements)

        findings = []
        if data["docWidth"] > data["viewportWidth"]:
            findings.append(self.finding(
                f"Document is {data['docWidth']}px wide in a {data['viewportWidth']}px viewport"
            ))
        for item in data["offenders"]:
            findings.append(self.finding(f"{item['element']} overflows by {item['overflow']}px"))
        return findings


class TouchTargetRule(LayoutRule):
    """Flags interactive elements below the 44x44px touch target minimum on small viewports."""

    rule_id = "touch-targets"
    min_size = 44
    max_viewport_width = 768
    max_elements = 10

    def applies_to(self, task: CaptureTask) -> bool:
        return task.viewport.width <= self.max_viewport_width

    async def evaluate(self, page: Page, task: CaptureTask) -> list[LayoutFinding]:
        targets = await page.evaluate("""([minSize, limit]) => {
            const small = [];
            const els = document.querySelectorAll('a[href], button, input, select, textarea, [role="button"]');
            for (const el of els) {
                const rect = el.getBoundingClientRect();
                const style = window.getComputedStyle(el);
                if (rect.width === 0 || rect.height === 0 || style.visibility === 'hidden') continue;
                if (rect.width < minSize || rect.height < minSize) {
                    const label = (el.textContent || el.getAttribute('aria-label') || '').trim().slice(0, 30);
                    small.push({
                        element: el.tagName.toLowerCase() + (el.id ? '#' + el.id : ''),
                        label,
                        width: Math.round(rect.width),
                        height: Math.round(rect.height),
                    });
                    if (small.length >= limit) break;
                }
            }
            return small;
        }""", [self.min_size, self.max_elements])

        return [
            self.finding(
                f"{t['element']}"
                + (f" \"{t['label']}\"" if t["label"] else "")
                + f" is {t['width']}x{t['height']}px (minimum {self.min_size}x{self.min_size})"
            )
            for t in targets
        ]


LAYOUT_RULES: dict[str, type[LayoutRule]] = {
    HorizontalOverflowRule.rule_id: HorizontalOverflowRule,
    TouchTargetRule.rule_id: TouchTargetRule,
}


def build_rules(names: list[str]) -> list[LayoutRule]:
    """Instantiate rules by id. Unknown ids are a configuration error."""
    unknown = [n for n in names if n not in LAYOUT_RULES]
    if unknown:
        raise ValueError(
            f"Unknown layout rule(s): {', '.join(unknown)}. "
            f"Available: {', '.join(sorted(LAYOUT_RULES))}"
        )
    return [LAYOUT_RULES[n]() for n in names]


async def run_rules(page: Page, task: CaptureTask, rules: list[LayoutRule]) -> list[LayoutFinding]:
    """Evaluate every applicable rule; a rule that fails is logged and skipped."""
    findings: list[LayoutFinding] = []
    for rule in rules:
        if not rule.applies_to(task):
            continue
        try:
            findings.extend(await rule.evaluate(page, task))
        except Exception as e:
            logger.warning("Layout rule %s failed on %s: %s", rule.rule_id, task.label, e)
    if findings:
        logger.info("[%s] %d layout finding(s)", task.label, len(findings))
    return findings
