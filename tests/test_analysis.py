import pytest

from app.analysis import (
    ScoreAnalysisEngine,
    find_critical_answers,
    percentage_of,
    rank_weak_areas,
    render_prompt,
    score_card,
    summarize_blocks,
)
from app.errors import RateLimitedError, ValidationError

from conftest import StubGenerator, make_answer


@pytest.fixture
def sample_answers():
    return [
        make_answer("A", 5, question="Daily study hours?"),
        make_answer("A", 0, question="Do you revise weekly?", answer="Never"),
        make_answer("B", 3, question="Mock tests per month?"),
    ]


class TestPercentage:
    def test_whole_numbers(self):
        assert percentage_of(5, 10) == 50
        assert percentage_of(3, 5) == 60

    def test_halves_round_up(self):
        assert percentage_of(1, 40) == 3
        assert percentage_of(5, 40) == 13

    def test_zero_total(self):
        assert percentage_of(0, 0) == 0


class TestBlockSummary:
    def test_folds_answers_per_block(self, sample_answers):
        blocks = summarize_blocks(sample_answers)

        assert list(blocks) == ["A", "B"]
        assert blocks["A"].model_dump() == {"total": 10, "scored": 5, "questions": 2}
        assert blocks["B"].model_dump() == {"total": 5, "scored": 3, "questions": 1}

    def test_totals_track_question_count(self):
        answers = [make_answer(block, points) for block, points in
                   [("X", 5), ("Y", 2), ("X", 1), ("Z", 0), ("X", 4), ("Y", 5)]]
        for summary in summarize_blocks(answers).values():
            assert summary.total == summary.questions * 5
            assert 0 <= summary.scored <= summary.total


class TestWeakAreas:
    def test_sorted_weakest_first(self, sample_answers):
        weak = rank_weak_areas(summarize_blocks(sample_answers))

        assert [(w.block, w.percentage) for w in weak] == [("A", "50"), ("B", "60")]
        assert weak[0].scored == 5 and weak[0].total == 10

    def test_keeps_lowest_three(self):
        answers = [
            make_answer("Focus", 4),
            make_answer("Revision", 1),
            make_answer("Sleep", 5),
            make_answer("Mocks", 2),
            make_answer("Notes", 3),
        ]
        weak = rank_weak_areas(summarize_blocks(answers))

        assert [w.block for w in weak] == ["Revision", "Mocks", "Notes"]
        percentages = [int(w.percentage) for w in weak]
        assert percentages == sorted(percentages)

    def test_ties_keep_first_seen_order(self):
        answers = [make_answer("Late", 2), make_answer("Early", 2), make_answer("Mid", 2)]
        weak = rank_weak_areas(summarize_blocks(answers))

        assert [w.block for w in weak] == ["Late", "Early", "Mid"]

    def test_identical_points_give_identical_percentages(self):
        answers = [make_answer(block, 3) for block in ("A", "B", "C", "D")]
        weak = rank_weak_areas(summarize_blocks(answers))

        assert len(weak) == 3
        assert {w.percentage for w in weak} == {"60"}

    def test_fewer_blocks_than_limit(self):
        weak = rank_weak_areas(summarize_blocks([make_answer("Only", 1)]))

        assert len(weak) == 1


class TestCriticalAnswers:
    def test_zero_point_answers_in_input_order(self, sample_answers):
        critical = find_critical_answers(sample_answers)

        assert critical == [sample_answers[1]]

    def test_capped_at_five(self):
        answers = [make_answer("A", 0, question=f"q{i}") for i in range(8)]
        critical = find_critical_answers(answers)

        assert [a.question for a in critical] == ["q0", "q1", "q2", "q3", "q4"]

    def test_none_when_everything_scored(self):
        assert find_critical_answers([make_answer("A", 5), make_answer("B", 1)]) == []


class TestPrompt:
    def test_includes_breakdown_weak_areas_and_gaps(self, sample_answers):
        blocks = summarize_blocks(sample_answers)
        score = score_card(sample_answers, status="Needs Work")
        prompt = render_prompt(
            score, blocks, rank_weak_areas(blocks), find_critical_answers(sample_answers)
        )

        assert "They scored 8/15 (53%)" in prompt
        assert 'categorizes them as "Needs Work"' in prompt
        assert "A: 5/10 (50%)" in prompt
        assert "- B: 3/5 (60%)" in prompt
        assert "CRITICAL GAPS (0-point answers):" in prompt
        assert "• Do you revise weekly?\n  Answer: Never" in prompt

    def test_omits_gaps_when_all_full_marks(self):
        answers = [make_answer("A", 5), make_answer("B", 5)]
        blocks = summarize_blocks(answers)
        weak = rank_weak_areas(blocks)
        prompt = render_prompt(score_card(answers), blocks, weak, [])

        assert {w.percentage for w in weak} == {"100"}
        assert "CRITICAL GAPS" not in prompt
        assert "categorizes them as" not in prompt


class TestEngine:
    @pytest.mark.asyncio
    async def test_aggregate_packages_narrative_and_breakdown(self, sample_answers):
        generator = StubGenerator(reply="Sach sunlo.")
        engine = ScoreAnalysisEngine(generator)

        result = await engine.aggregate(sample_answers, status="Average")

        assert result.message == "Sach sunlo."
        assert result.score.model_dump() == {
            "total": 8, "max": 15, "percentage": "53", "status": "Average",
        }
        assert [b.model_dump() for b in result.block_analysis] == [
            {"block": "A", "scored": 5, "total": 10, "percentage": "50"},
            {"block": "B", "scored": 3, "total": 5, "percentage": "60"},
        ]
        assert len(generator.prompts) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("answers", [None, []])
    async def test_missing_answers_never_reach_generator(self, answers):
        generator = StubGenerator()
        engine = ScoreAnalysisEngine(generator)

        with pytest.raises(ValidationError) as excinfo:
            await engine.aggregate(answers)

        assert excinfo.value.message == "answers required"
        assert generator.prompts == []

    @pytest.mark.asyncio
    async def test_generator_errors_propagate(self, sample_answers):
        engine = ScoreAnalysisEngine(StubGenerator(error=RateLimitedError(details="quota")))

        with pytest.raises(RateLimitedError):
            await engine.aggregate(sample_answers)

    @pytest.mark.asyncio
    async def test_repeat_runs_are_identical(self, sample_answers):
        engine = ScoreAnalysisEngine(StubGenerator())

        first = engine.summarize(sample_answers)
        second = engine.summarize(sample_answers)
        assert first == second

        assert await engine.aggregate(sample_answers) == await engine.aggregate(sample_answers)
