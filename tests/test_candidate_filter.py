from __future__ import annotations

from unihelper.models.analysis import SearchCandidate
from unihelper.services.candidate_filter import filter_candidates


def _candidate(title: str, url: str) -> SearchCandidate:
    return SearchCandidate(title=title, url=url)


def test_caps_results_and_keeps_one_per_domain():
    candidates = [
        _candidate(f"Computer Science BSc {i}", f"https://www.uni{i}.edu/programs/cs")
        for i in range(15)
    ]

    accepted = filter_candidates(candidates, "computer science", 10)

    assert len(accepted) == 10
    assert [c.url for c in accepted] == [c.url for c in candidates[:10]]


def test_duplicate_domains_are_dropped():
    candidates = [
        _candidate("CS Degree", "https://www.example.edu/degree/cs"),
        _candidate("CS Degree again", "https://apply.example.edu/programs/cs"),
        _candidate("Other CS", "https://www.other.ac.uk/courses/cs"),
    ]

    accepted = filter_candidates(candidates, "cs", 10)

    assert [c.url for c in accepted] == [
        "https://www.example.edu/degree/cs",
        "https://www.other.ac.uk/courses/cs",
    ]


def test_listicles_and_homepages_are_rejected():
    candidates = [
        _candidate("Top universities for Computer Science 2024", "https://rankings.com/programs/cs"),
        _candidate("Example University", "https://www.example.edu/"),
        _candidate("Example University home", "https://www.example2.edu/index.html"),
    ]

    assert filter_candidates(candidates, "computer science", 10) == []


def test_rejected_candidate_does_not_block_its_domain():
    candidates = [
        _candidate("Example University", "https://www.example.edu/"),
        _candidate("BSc Physics", "https://www.example.edu/study/physics"),
    ]

    accepted = filter_candidates(candidates, "physics", 10)

    assert [c.url for c in accepted] == ["https://www.example.edu/study/physics"]


def test_topic_in_title_accepts_path_without_keyword():
    candidates = [
        _candidate("Marine Biology at Coastal University", "https://coastal.edu/en/marine-bio"),
        _candidate("Campus news", "https://inland.edu/en/news/2024"),
    ]

    accepted = filter_candidates(candidates, "Marine Biology", 10)

    assert [c.url for c in accepted] == ["https://coastal.edu/en/marine-bio"]


def test_blank_topic_never_matches_title():
    candidates = [_candidate("Anything at all", "https://example.edu/en/about")]

    assert filter_candidates(candidates, "  ", 10) == []
