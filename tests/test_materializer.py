import sys, pathlib; sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from llm_qbank_gen.core.materializer import Materializer, question_name, to_multichoice
from llm_qbank_gen.core.types import Category, ParsedQuestion


class RecordingSink:
    def __init__(self):
        self.questions = []
        self.descriptions = []

    def create_category(self, context_id, resource_description):
        return Category(id=1, name="GenAI", info=resource_description, context_id=context_id)

    def create_question(self, name, question, category):
        self.questions.append((name, question))
        return len(self.questions)

    def add_description(self, name, text, category):
        self.descriptions.append((name, text))
        return 100 + len(self.descriptions)


def test_exactly_one_answer_gets_full_weight():
    q = to_multichoice(ParsedQuestion("Q?", ("a", "b", "c", "d"), 2))
    assert [a.weight for a in q.answers] == [0.0, 0.0, 1.0, 0.0]
    assert [a.text for a in q.answers] == ["a", "b", "c", "d"]
    assert q.single is True
    assert q.shuffle_answers is True
    assert q.answer_numbering == "abc"


def test_question_names_are_zero_padded():
    assert question_name(1) == "001"
    assert question_name(42) == "042"
    assert question_name(1000) == "1000"


def test_materialize_numbers_from_one():
    sink = RecordingSink()
    category = sink.create_category(3, "Lecture 1")
    parsed = [ParsedQuestion(f"Q{i}?", ("x", "y"), 0) for i in range(3)]

    ids = Materializer(sink, category).materialize(parsed)

    assert ids == [1, 2, 3]
    assert [name for name, _ in sink.questions] == ["001", "002", "003"]


def test_placeholder_goes_through_description():
    sink = RecordingSink()
    category = sink.create_category(3, "Lecture 1")
    assert Materializer(sink, category).placeholder("Issue", "details") == 101
    assert sink.descriptions == [("Issue", "details")]
