from __future__ import annotations

import json

from app.modules.questions.extractor import StreamingExtractor, extract_questions
from app.modules.questions.models import Category, Flashcard

from .fakes import fill_in_blanks, matching, response_json


def test_flashcard_completes_across_deltas():
    response = '{"flashcards":[{"question":"What is a cat?","answer":"A mammal"}]}'
    split = response.index("A mam") + len("A mam")
    extractor = StreamingExtractor()

    partial = extractor.feed(response[:split])
    assert partial.flashcards == []

    done = extractor.feed(response[split:])
    assert done.flashcards == [Flashcard(question="What is a cat?", answer="A mammal")]


def test_extract_is_idempotent():
    buffer = response_json(3)[:-120]
    extractor = StreamingExtractor()
    first = extractor.extract(buffer)
    second = extractor.extract(buffer)
    assert first == second
    assert first == extract_questions(buffer)


def test_incremental_feed_matches_one_shot_extraction():
    response = response_json(3)
    extractor = StreamingExtractor()
    for ch in response:
        streamed = extractor.feed(ch)
    assert streamed == extract_questions(response)
    assert streamed.counts() == {c: 3 for c in Category}


def test_counts_never_shrink_while_streaming():
    response = response_json(4)
    extractor = StreamingExtractor()
    previous = {c: 0 for c in Category}
    for end in range(0, len(response), 7):
        counts = extractor.extract(response[:end]).counts()
        for c in Category:
            assert counts[c] >= previous[c]
        previous = counts


def test_truncated_record_is_not_returned():
    response = response_json(2)
    cut = response.index('"Answer 2"') + 4
    found = extract_questions(response[:cut])
    assert [f.question for f in found.flashcards] == ["Question 1?"]


def test_short_option_list_is_still_a_record():
    buffer = '"mcqs": [{"question": "Pick one", "options": ["A", "B"], "correctAnswer": 1}'
    found = extract_questions(buffer)
    assert len(found.mcqs) == 1
    assert found.mcqs[0].options == ["A", "B"]
    assert found.mcqs[0].correct_answer == 1


def test_mcq_waits_for_complete_index():
    # "1" may still become "12"
    buffer = '{"question": "Q", "options": ["a", "b"], "correctAnswer": 1'
    assert StreamingExtractor().extract(buffer).mcqs == []


def test_final_pass_keeps_index_cut_off_by_end_of_response():
    buffer = '{"question": "Q", "options": ["a", "b"], "correctAnswer": 1'
    (q,) = extract_questions(buffer).mcqs
    assert q.correct_answer == 1


def test_missing_correct_matches_become_identity_pairs():
    record = matching(1)
    del record["correctMatches"]
    found = extract_questions(json.dumps({"matchingQuestions": [record]}))
    (q,) = found.matching_questions
    assert q.correct_matches == [0, 1, 2, 3]
    assert q.inferred_matches is True


def test_identity_pairs_trim_unmatched_left_items():
    buffer = (
        '{"question": "Match", "leftItems": ["a", "b", "c"], '
        '"rightItems": ["1", "2"]}'
    )
    (q,) = extract_questions(buffer).matching_questions
    assert q.left_items == ["a", "b"]
    assert q.correct_matches == [0, 1]


def test_escaped_quotes_and_brackets_inside_strings():
    buffer = json.dumps(
        {
            "mcqs": [
                {
                    "question": 'What does "x[0]" return?',
                    "options": ["the [first] item", 'a "quoted" value', "None"],
                    "correctAnswer": 0,
                }
            ]
        }
    )
    (q,) = extract_questions(buffer).mcqs
    assert q.question == 'What does "x[0]" return?'
    assert q.options == ["the [first] item", 'a "quoted" value', "None"]


def test_synthetic_ids_are_sequential():
    found = extract_questions(response_json(3))
    assert [q.id for q in found.true_false_questions] == [1, 2, 3]
    assert [q.id for q in found.matching_questions] == [1, 2, 3]
    assert [q.id for q in found.fill_in_blanks_questions] == ["fib-1", "fib-2", "fib-3"]


def test_true_false_values_and_optional_explanation():
    buffer = (
        '[{"id": 1, "question": "Sky is blue.", "isTrue": true, "explanation": "Rayleigh."},'
        ' {"id": 2, "question": "Fire is cold.", "isTrue": "false"}]'
    )
    first, second = extract_questions(buffer).true_false_questions
    assert first.is_true is True and first.explanation == "Rayleigh."
    assert second.is_true is False and second.explanation is None


def test_fill_in_blanks_complete_text_is_substituted():
    buffer = (
        '{"textWithBlanks": "Water boils at [BLANK_0] degrees [BLANK_1].", '
        '"correctAnswers": ["100", "Celsius"]}'
    )
    (q,) = extract_questions(buffer).fill_in_blanks_questions
    assert q.question == "Complete the sentence:"
    assert q.complete_text == "Water boils at 100 degrees Celsius."


def test_garbage_yields_nothing():
    found = extract_questions('not json at all {"question": 12, "answer": [}')
    assert found.counts() == {c: 0 for c in Category}


def test_unrelated_buffer_restarts_extraction():
    extractor = StreamingExtractor()
    extractor.extract('{"question": "A?", "answer": "a"}, {"question": "B?", "answer": "b"}')
    fresh = extractor.extract('{"question": "C?", "answer": "c"}')
    assert [f.question for f in fresh.flashcards] == ["C?"]


def test_idle_category_does_not_rescan_from_the_start():
    flashcards_only = response_json(3).split('"mcqs"')[0]
    extractor = StreamingExtractor()
    extractor.extract(flashcards_only)
    assert extractor._cursors[Category.MCQS].offset == flashcards_only.rindex('"question"')
    assert extractor._cursors[Category.FILL_IN_BLANKS].offset > flashcards_only.rindex("Answer 3")

    later = extractor.feed(
        '"mcqs": [{"question": "Pick", "options": ["a", "b"], "correctAnswer": 0}, '
        '"fillInBlanksQuestions": [{"question": "Fill:", '
        '"textWithBlanks": "[BLANK_0] rises.", "correctAnswers": ["Sun"]}]'
    )
    assert [q.question for q in later.mcqs] == ["Pick"]
    assert [q.question for q in later.fill_in_blanks_questions] == ["Fill:"]


def test_fill_in_blanks_question_survives_char_by_char_streaming():
    record = fill_in_blanks(1)
    record["question"] = "Which words are missing?"
    response = json.dumps({"fillInBlanksQuestions": [record]}, indent=2)
    extractor = StreamingExtractor()
    for ch in response:
        streamed = extractor.feed(ch)
    (q,) = streamed.fill_in_blanks_questions
    assert q.question == "Which words are missing?"
    assert q.correct_answers == ["alpha1", "beta1"]
