from __future__ import annotations

import dataclasses

import pytest

from app.models.course import Question
from app.models.result import LearnerData
from app.models.session import LearnerSession, TrainingStep
from app.services import learner_flow as flow
from app.services.seed import initial_course

COURSE = initial_course(created_at=1_750_000_000)
CORRECT = [q.correct_index for q in COURSE.questions]  # [1, 0, 0, 0, 1]


def _session(**changes) -> LearnerSession:
    learner = LearnerData(
        first_name="Arta",
        last_name="Krasniqi",
        company_name="Acme Ltd",
        access_code="ACME",
    )
    base = LearnerSession(session_id="s-1", learner=learner, course_id=COURSE.id)
    return dataclasses.replace(base, **changes)


def _step(session, *events, course=COURSE) -> flow.Transition:
    t = flow.Transition(session)
    for event in events:
        t = flow.transition(t.session, event, course)
    return t


def _watched() -> LearnerSession:
    """A session that has watched the whole video and answered every checkpoint."""
    return _session(
        step=TrainingStep.VIDEO,
        video_position=COURSE.video_duration,
        video_max_reached=COURSE.video_duration,
        completed_checkpoints=frozenset(cp.time for cp in COURSE.checkpoints),
    )


def _quiz_events(options: list[int]) -> list:
    events: list = []
    for option in options:
        events += [flow.SelectAnswer(option), flow.NextQuestion()]
    return events


# ---- entry resolution ----


def test_path_code_wins_over_everything() -> None:
    r = flow.resolve_entry_code(
        path_code="path1", query_code="q", session_code="s", manual_code="m"
    )
    assert r == flow.EntryResolution(code="PATH1", source="path")


def test_query_code_wins_over_session_and_manual() -> None:
    r = flow.resolve_entry_code(query_code=" promo ", session_code="s", manual_code="m")
    assert r.code == "PROMO"
    assert r.source == "query"


def test_blank_candidates_are_skipped() -> None:
    r = flow.resolve_entry_code(path_code="  ", query_code="", manual_code="typed")
    assert r.source == "manual"


def test_nothing_to_prefill() -> None:
    assert flow.resolve_entry_code() == flow.EntryResolution(code=None, source=None)


# ---- scoring ----


def test_all_correct_is_100() -> None:
    answers = {q.id: q.correct_index for q in COURSE.questions}
    assert flow.score_answers(COURSE, answers) == 100


def test_unanswered_questions_count_as_wrong() -> None:
    assert flow.score_answers(COURSE, {1: CORRECT[0]}) == 20


@pytest.mark.parametrize(
    "total, correct, expected",
    [(3, 2, 67), (3, 1, 33), (8, 1, 13), (8, 3, 38), (6, 5, 83)],
)
def test_score_rounds_half_up(total: int, correct: int, expected: int) -> None:
    questions = tuple(
        Question(id=i, text=f"Q{i}", options=("a", "b"), correct_index=0)
        for i in range(1, total + 1)
    )
    course = dataclasses.replace(COURSE, questions=questions)
    answers = {i: (0 if i <= correct else 1) for i in range(1, total + 1)}
    assert flow.score_answers(course, answers) == expected


def test_course_without_questions_scores_zero() -> None:
    assert flow.score_answers(dataclasses.replace(COURSE, questions=()), {}) == 0


# ---- ENTRY / INTRO ----


def test_code_accepted_moves_to_intro_and_persists() -> None:
    t = flow.transition(_session(), flow.CodeAccepted(), COURSE)
    assert t.session.step is TrainingStep.INTRO
    assert t.effects == (flow.PersistSession(),)


def test_intro_start_and_back() -> None:
    t = _step(_session(step=TrainingStep.INTRO), flow.StartVideo())
    assert t.session.step is TrainingStep.VIDEO
    t = _step(t.session, flow.BackToIntro())
    assert t.session.step is TrainingStep.INTRO


def test_unknown_event_for_step_is_refused() -> None:
    with pytest.raises(flow.FlowError, match="NextQuestion is not allowed in step INTRO"):
        flow.transition(_session(step=TrainingStep.INTRO), flow.NextQuestion(), COURSE)


def test_result_step_accepts_nothing() -> None:
    with pytest.raises(flow.FlowError):
        flow.transition(_session(step=TrainingStep.RESULT), flow.RetryQuiz(), COURSE)


# ---- VIDEO ----


def test_progress_stops_at_first_open_checkpoint() -> None:
    t = _step(_session(step=TrainingStep.VIDEO), flow.VideoProgress(50))
    assert t.session.video_position == 30
    assert t.session.video_max_reached == 30
    assert t.session.active_checkpoint == 30


def test_progress_is_ignored_while_checkpoint_is_open() -> None:
    t = _step(_session(step=TrainingStep.VIDEO), flow.VideoProgress(50))
    held = _step(t.session, flow.VideoProgress(90), flow.Seek(10))
    assert held.session == t.session
    assert held.effects == ()


def test_answering_checkpoint_resumes_progress() -> None:
    t = _step(
        _session(step=TrainingStep.VIDEO),
        flow.VideoProgress(50),
        flow.AnswerCheckpoint(0),
        flow.VideoProgress(50),
    )
    assert t.session.active_checkpoint is None
    assert t.session.completed_checkpoints == frozenset({30})
    assert t.session.video_position == 50


def test_wrong_checkpoint_answer_still_completes_it() -> None:
    t = _step(_session(step=TrainingStep.VIDEO), flow.VideoProgress(31), flow.AnswerCheckpoint(1))
    assert 30 in t.session.completed_checkpoints


def test_checkpoint_answer_out_of_range() -> None:
    t = _step(_session(step=TrainingStep.VIDEO), flow.VideoProgress(31))
    with pytest.raises(flow.FlowError):
        _step(t.session, flow.AnswerCheckpoint(7))


def test_checkpoint_answer_without_open_checkpoint() -> None:
    with pytest.raises(flow.FlowError):
        _step(_session(step=TrainingStep.VIDEO), flow.AnswerCheckpoint(0))


def test_progress_is_clamped_to_duration() -> None:
    t = _step(_watched(), flow.VideoProgress(10_000))
    assert t.session.video_position == COURSE.video_duration
    t = _step(_watched(), flow.VideoProgress(-5))
    assert t.session.video_position == 0


def test_seek_cannot_pass_furthest_point() -> None:
    session = _session(step=TrainingStep.VIDEO, video_position=20, video_max_reached=25)
    forward = _step(session, flow.Seek(90))
    assert forward.session.video_position == 25
    back = _step(session, flow.Seek(5))
    assert back.session.video_position == 5
    assert back.session.video_max_reached == 25


def test_complete_video_needs_every_checkpoint() -> None:
    session = dataclasses.replace(_watched(), completed_checkpoints=frozenset({30, 65}))
    with pytest.raises(flow.FlowError, match="checkpoint"):
        _step(session, flow.CompleteVideo())


def test_complete_video_needs_the_end() -> None:
    session = dataclasses.replace(_watched(), video_max_reached=100)
    with pytest.raises(flow.FlowError, match="end"):
        _step(session, flow.CompleteVideo())


def test_complete_video_moves_to_test() -> None:
    t = _step(_watched(), flow.CompleteVideo())
    assert t.session.step is TrainingStep.TEST
    assert t.session.question_index == 0
    assert t.session.answers == {}


def test_full_watch_through() -> None:
    events = [flow.StartVideo()]
    for cp in COURSE.checkpoints:
        events += [flow.VideoProgress(cp.time + 5), flow.AnswerCheckpoint(cp.correct_index)]
    events += [flow.VideoProgress(COURSE.video_duration), flow.CompleteVideo()]
    t = _step(_session(step=TrainingStep.INTRO), *events)
    assert t.session.step is TrainingStep.TEST


# ---- TEST ----


def test_next_requires_an_answer() -> None:
    t = _step(_watched(), flow.CompleteVideo())
    with pytest.raises(flow.FlowError, match="answer"):
        _step(t.session, flow.NextQuestion())


def test_previous_at_first_question_is_refused() -> None:
    t = _step(_watched(), flow.CompleteVideo())
    with pytest.raises(flow.FlowError):
        _step(t.session, flow.PreviousQuestion())


def test_previous_keeps_answers() -> None:
    t = _step(
        _watched(),
        flow.CompleteVideo(),
        flow.SelectAnswer(1),
        flow.NextQuestion(),
        flow.PreviousQuestion(),
    )
    assert t.session.question_index == 0
    assert t.session.answers == {1: 1}


def test_select_answer_out_of_range() -> None:
    t = _step(_watched(), flow.CompleteVideo())
    with pytest.raises(flow.FlowError):
        _step(t.session, flow.SelectAnswer(2))


def test_passing_first_attempt_finishes() -> None:
    t = _step(_watched(), flow.CompleteVideo(), *_quiz_events(CORRECT))
    assert t.session.step is TrainingStep.RESULT
    assert t.session.final_score == 100
    assert t.session.attempts == 1
    assert t.effects == (flow.RecordResult(score=100, attempts=1), flow.ClearSession())


def test_exactly_80_passes() -> None:
    answers = CORRECT[:4] + [0]  # last one wrong
    t = _step(_watched(), flow.CompleteVideo(), *_quiz_events(answers))
    assert t.session.final_score == 80
    assert t.effects[0] == flow.RecordResult(score=80, attempts=1)


def test_failing_first_attempt_offers_retry() -> None:
    wrong = [1 - c for c in CORRECT[:4]] + [2]
    t = _step(_watched(), flow.CompleteVideo(), *_quiz_events(wrong))
    assert t.session.step is TrainingStep.TEST
    assert t.session.retry_score == 0
    assert t.session.attempts == 1
    assert t.session.answers == {}
    assert t.effects == (flow.PersistSession(),)

    with pytest.raises(flow.FlowError):
        _step(t.session, flow.SelectAnswer(0))


def test_sixty_percent_first_attempt_is_not_final() -> None:
    wrong = [1 - c for c in CORRECT[:4]] + [2]
    t = _step(_watched(), flow.CompleteVideo(), *_quiz_events(CORRECT[:3] + wrong[3:]))
    assert t.session.step is TrainingStep.TEST
    assert t.session.retry_score == 60
    assert t.session.attempts == 1
    assert t.session.final_score is None
    assert not any(isinstance(e, flow.RecordResult) for e in t.effects)


def test_second_attempt_is_final_even_when_failing() -> None:
    wrong = [1 - c for c in CORRECT[:4]] + [2]
    t = _step(
        _watched(),
        flow.CompleteVideo(),
        *_quiz_events(wrong),
        flow.RetryQuiz(),
        *_quiz_events(CORRECT[:3] + wrong[3:]),
    )
    assert t.session.step is TrainingStep.RESULT
    assert t.session.final_score == 60
    assert t.effects[0] == flow.RecordResult(score=60, attempts=2)


def test_review_video_keeps_progress_and_rewinds() -> None:
    wrong = [1 - c for c in CORRECT[:4]] + [2]
    t = _step(_watched(), flow.CompleteVideo(), *_quiz_events(wrong), flow.ReviewVideo())
    assert t.session.step is TrainingStep.VIDEO
    assert t.session.video_position == 0
    assert t.session.video_max_reached == COURSE.video_duration
    assert t.session.retry_score is None
    assert t.session.attempts == 1

    again = _step(t.session, flow.CompleteVideo(), *_quiz_events(CORRECT))
    assert again.effects[0] == flow.RecordResult(score=100, attempts=2)


def test_retry_without_failure_is_refused() -> None:
    t = _step(_watched(), flow.CompleteVideo())
    with pytest.raises(flow.FlowError):
        _step(t.session, flow.RetryQuiz())
    with pytest.raises(flow.FlowError):
        _step(t.session, flow.ReviewVideo())
