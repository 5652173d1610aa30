"""Tests for the results dashboard endpoints."""

from fastapi.testclient import TestClient


def answer_first_questions(client: TestClient, participant_id: str, scale: int) -> None:
    """Answer q1 to q4 for one participant."""
    client.post("/api/v1/participants", json={"participant_id": participant_id})
    client.post(f"/api/v1/survey/{participant_id}/start")
    for value in (scale, scale, "no", f"Event from {participant_id}"):
        client.post(f"/api/v1/survey/{participant_id}/answer", json={"value": value})
        client.post(f"/api/v1/survey/{participant_id}/next")


def find_question(results: dict, question_id: str) -> dict:
    for section in results["sections"]:
        for question in section["questions"]:
            if question["question_id"] == question_id:
                return question
    raise AssertionError(f"{question_id} not in results")


class TestResults:
    """Tests for the aggregated results view."""

    def test_empty_results(self, client: TestClient) -> None:
        """Test that every section is present before any answers."""
        response = client.get("/api/v1/results")

        assert response.status_code == 200
        data = response.json()
        assert data["respondents"] == 0
        assert [s["name"] for s in data["sections"]] == [
            "Facts", "Feelings", "Findings", "Future"
        ]
        assert find_question(data, "q1")["histogram"] == [0, 0, 0, 0, 0]
        assert find_question(data, "q4")["page"] == 1
        assert find_question(data, "q4")["total_pages"] == 0

    def test_results_follow_answers(self, client: TestClient) -> None:
        """Test that answers show up in the aggregates straight away."""
        answer_first_questions(client, "alpha1", 1)
        answer_first_questions(client, "bravo2", 5)

        data = client.get("/api/v1/results").json()

        assert data["respondents"] == 2
        q1 = find_question(data, "q1")
        assert q1["mean"] == 3.0
        assert q1["histogram"] == [1, 0, 0, 0, 1]
        assert find_question(data, "q3")["tally"] == {"yes": 0, "no": 2, "unknown": 0}
        assert find_question(data, "q4")["items"] == [
            "Event from alpha1", "Event from bravo2"
        ]


class TestTextPaging:
    """Tests for moving text page cursors."""

    def test_page_is_clamped(self, client: TestClient) -> None:
        """Test that a page past the end is clamped to the last page."""
        for i in range(7):
            answer_first_questions(client, f"user{i:02d}", 3)

        response = client.put("/api/v1/results/q4/page", json={"page": 9})

        assert response.status_code == 200
        data = response.json()
        assert data["page"] == 2
        assert data["total_pages"] == 2
        assert data["items"] == ["Event from user05", "Event from user06"]

    def test_unknown_question(self, client: TestClient) -> None:
        """Test that paging an unknown question is a 404."""
        response = client.put("/api/v1/results/q99/page", json={"page": 1})

        assert response.status_code == 404

    def test_non_text_question(self, client: TestClient) -> None:
        """Test that only text questions have pages."""
        response = client.put("/api/v1/results/q1/page", json={"page": 1})

        assert response.status_code == 422
