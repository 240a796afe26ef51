import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Sequence

from .errors import ValidationError
from .schemas import (
    MAX_POINTS_PER_QUESTION,
    AnalysisResult,
    BlockBreakdown,
    BlockSummary,
    GradedAnswer,
    ScoreAnalysis,
    ScoreCard,
    WeakArea,
)

logger = logging.getLogger(__name__)

WEAK_AREA_LIMIT = 3
CRITICAL_ANSWER_LIMIT = 5

ANALYSIS_PROMPT = """\
You are analyzing a student's preparation DNA test for competitive exams. \
They scored {total}/{max} ({percentage}%){status_clause}.

SCORE BREAKDOWN BY BLOCK:
{breakdown}

WEAKEST AREAS:
{weak_areas}
{critical_section}
Based on this data, provide a brutally honest, personalized reality check in 3-4 paragraphs:

1. **The Hard Truth**: Point out their specific weaknesses based on the blocks where \
they scored lowest. Be direct about what these gaps mean for their exam chances.

2. **The Hidden Pattern**: Connect the dots between their weak areas. Show how these \
deficiencies create a vicious cycle that's sabotaging their preparation.

3. **The Reality of Time**: Make them understand the urgency. With {standing}, what \
does their future look like if nothing changes?

4. **The Wake-Up Call**: End with a stark comparison: where they are vs. where the \
top 1% operates. Make it impossible to ignore the gap.

Write in a direct, no-nonsense Hindi-English mix tone that Indian students relate to. \
Use "you" to address them. Be brutally honest but not demotivating. The goal is to \
shock them into action, not crush their spirit.

Do NOT:
- Give generic advice
- List solutions (that comes later)
- Use motivational clichés
- Sugarcoat the reality

Focus on making them FEEL the weight of their current situation through specific \
insights from their test responses. Keep it to 3-4 powerful paragraphs.
"""

CRITICAL_SECTION = """
CRITICAL GAPS (0-point answers):
{answers}
"""


def percentage_of(scored: int, total: int) -> int:
    """Whole-number percentage, rounding halves up."""
    if total <= 0:
        return 0
    value = Decimal(scored * 100) / Decimal(total)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def summarize_blocks(answers: Sequence[GradedAnswer]) -> Dict[str, BlockSummary]:
    blocks: Dict[str, BlockSummary] = {}
    for answer in answers:
        summary = blocks.setdefault(answer.block, BlockSummary())
        summary.scored += answer.points
        summary.total += MAX_POINTS_PER_QUESTION
        summary.questions += 1
    return blocks


def rank_weak_areas(
    blocks: Dict[str, BlockSummary], limit: int = WEAK_AREA_LIMIT
) -> List[WeakArea]:
    """Return the ``limit`` lowest-scoring blocks, weakest first.

    Blocks with the same percentage keep the order they were first seen in.
    """
    ranked = sorted(
        (
            (percentage_of(data.scored, data.total), block, data)
            for block, data in blocks.items()
        ),
        key=lambda item: item[0],
    )
    return [
        WeakArea(
            block=block,
            scored=data.scored,
            total=data.total,
            percentage=str(pct),
        )
        for pct, block, data in ranked[:limit]
    ]


def find_critical_answers(
    answers: Sequence[GradedAnswer], limit: int = CRITICAL_ANSWER_LIMIT
) -> List[GradedAnswer]:
    return [answer for answer in answers if answer.points == 0][:limit]


def score_card(answers: Sequence[GradedAnswer], status: Optional[str] = None) -> ScoreCard:
    total = sum(answer.points for answer in answers)
    maximum = len(answers) * MAX_POINTS_PER_QUESTION
    return ScoreCard(
        total=total,
        max=maximum,
        percentage=str(percentage_of(total, maximum)),
        status=status,
    )


def render_prompt(
    score: ScoreCard,
    blocks: Dict[str, BlockSummary],
    weak_areas: Sequence[WeakArea],
    critical_answers: Sequence[GradedAnswer],
) -> str:
    breakdown = "\n".join(
        f"{block}: {data.scored}/{data.total} ({percentage_of(data.scored, data.total)}%)"
        for block, data in blocks.items()
    )
    weak_text = "\n".join(
        f"- {area.block}: {area.scored}/{area.total} ({area.percentage}%)"
        for area in weak_areas
    )
    critical_section = ""
    if critical_answers:
        critical_section = CRITICAL_SECTION.format(
            answers="\n\n".join(
                f"• {answer.question}\n  Answer: {answer.answer}"
                for answer in critical_answers
            )
        )

    if score.status:
        status_clause = f', which categorizes them as "{score.status}"'
        standing = f'their current score category of "{score.status}"'
    else:
        status_clause = ""
        standing = "their current score"

    return ANALYSIS_PROMPT.format(
        total=score.total,
        max=score.max,
        percentage=score.percentage,
        status_clause=status_clause,
        breakdown=breakdown,
        weak_areas=weak_text,
        critical_section=critical_section,
        standing=standing,
    )


class ScoreAnalysisEngine:
    """Scores a student's graded answers and asks the text generator for a critique.

    ``generator`` is any object with an async ``generate(prompt) -> str``
    method that raises the errors from :mod:`app.errors`.
    """

    def __init__(self, generator):
        self.generator = generator

    def summarize(
        self,
        answers: Optional[Sequence[GradedAnswer]],
        status: Optional[str] = None,
    ) -> ScoreAnalysis:
        if not answers:
            raise ValidationError("answers required")

        blocks = summarize_blocks(answers)
        weak_areas = rank_weak_areas(blocks)
        critical = find_critical_answers(answers)
        score = score_card(answers, status)
        return ScoreAnalysis(
            score=score,
            blocks=blocks,
            weak_areas=weak_areas,
            critical_answers=critical,
            prompt=render_prompt(score, blocks, weak_areas, critical),
        )

    async def aggregate(
        self,
        answers: Optional[Sequence[GradedAnswer]],
        status: Optional[str] = None,
    ) -> AnalysisResult:
        analysis = self.summarize(answers, status)
        logger.info(
            "Analyzing %d answers across %d blocks (score %s/%s)",
            len(answers),
            len(analysis.blocks),
            analysis.score.total,
            analysis.score.max,
        )

        message = await self.generator.generate(analysis.prompt)

        return AnalysisResult(
            message=message,
            score=analysis.score,
            block_analysis=[
                BlockBreakdown(
                    block=block,
                    scored=data.scored,
                    total=data.total,
                    percentage=str(percentage_of(data.scored, data.total)),
                )
                for block, data in analysis.blocks.items()
            ],
        )
