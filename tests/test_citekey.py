from conftest import make_work

from research_hubs.utils.files import generate_cite_key, is_hub_filename, sanitize_filename


def test_cite_key_scenario() -> None:
    work = make_work("W1", title="A Study of Deep Networks", author="Jane Q. Smith", year=2021)
    assert generate_cite_key(work) == "hub_Smith2021_StudyDeepNetworks"


def test_cite_key_is_deterministic() -> None:
    first = make_work("W1", title="Graph Neural Networks: A Review", author="Ada Lovelace")
    second = make_work("W2", title="Graph Neural Networks: A Review", author="Ada Lovelace")
    assert generate_cite_key(first) == generate_cite_key(second) == "hub_Lovelace2021_GraphNeuralNetworks"


def test_cite_key_fallbacks() -> None:
    work = make_work("W1", title="On it", author=None, year=None)
    assert generate_cite_key(work) == "hub_UnknownNoYear_UnknownTitle"


def test_cite_key_drops_stop_words_and_punctuation() -> None:
    work = make_work("W1", title="How the NEW models were trained: from data, over time!")
    # how/the/new/were/from/over/time are stop words
    assert generate_cite_key(work) == "hub_Smith2021_ModelsTrainedData"


def test_cite_key_blank_author_name() -> None:
    work = make_work("W1", author="   ")
    assert generate_cite_key(work).startswith("hub_Unknown2021_")


def test_cite_key_is_filesystem_safe() -> None:
    work = make_work("W1", title="x" * 300, author='Dr<>:"/\\|?* Who')
    key = generate_cite_key(work)
    assert key
    assert len(key) <= 100
    assert not set('<>:"/\\|?*') & set(key)


def test_sanitize_filename() -> None:
    assert sanitize_filename('  a:b  \t c?  ') == "ab c"
    assert sanitize_filename("y" * 150) == "y" * 100


def test_is_hub_filename() -> None:
    assert is_hub_filename("hub_Smith2021_Study.md")
    assert is_hub_filename("Hub_Smith2021_Study.md")
    assert not is_hub_filename("Smith2021.md")
