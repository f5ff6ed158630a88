import pytest

EDITOR = ("instructor",)


def mcq_payload(text, marks, correct, wrong):
    return {
        "questionText": text,
        "type": "MCQ",
        "marks": marks,
        "duration": 1,
        "options": [{"option": correct, "isCorrect": True}] + [{"option": option} for option in wrong],
    }


@pytest.fixture
async def published_quiz(client, auth_headers, make_lesson):
    """Quiz bound to a 50 XP lesson, created through the API"""
    lesson = await make_lesson(xp=50)
    editor = auth_headers(100, EDITOR)

    response = await client.post("/quiz", json={"title": "Europe", "lessonId": lesson.id}, headers=editor)
    assert response.status_code == 201
    quiz = response.json()["data"]

    response = await client.post("/question", json={
        "quizId": quiz["id"],
        "questions": [
            mcq_payload("Capital of France?", 5, "Paris", ["Lyon"]),
            mcq_payload("Capital of Italy?", 10, "Rome", ["Milan"]),
        ],
    }, headers=editor)
    assert response.status_code == 201
    question_ids = [question["id"] for question in response.json()["data"]]

    return {"quiz_id": quiz["id"], "lesson_id": lesson.id, "question_ids": question_ids}


def submission(question_ids, answers, time_taken=30):
    return {
        "answers": [
            {"questionId": question_id, "answer": answer, "type": "MCQ"}
            for question_id, answer in zip(question_ids, answers)
        ],
        "timeTaken": time_taken,
    }


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["database"]["status"] == "healthy"


async def test_requests_without_token_are_rejected(client):
    response = await client.post("/quiz/1/submit", json={"answers": []})

    assert response.status_code == 401
    body = response.json()
    assert body["error"] == "AUTHENTICATION_FAILED"
    assert "timestamp" in body


async def test_invalid_token(client):
    response = await client.get("/quiz/1", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401


async def test_learners_cannot_edit_catalog(client, auth_headers):
    response = await client.post("/quiz", json={"title": "Nope", "courseId": 1}, headers=auth_headers(7))

    assert response.status_code == 403
    assert response.json()["error"] == "ACCESS_DENIED"


async def test_quiz_must_target_exactly_one_level(client, auth_headers):
    response = await client.post(
        "/quiz",
        json={"title": "Two levels", "courseId": 1, "chapterId": 2},
        headers=auth_headers(100, EDITOR)
    )

    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_ERROR"


async def test_quiz_for_unknown_lesson(client, auth_headers):
    response = await client.post("/quiz", json={"title": "Orphan", "lessonId": 999}, headers=auth_headers(100, EDITOR))

    assert response.status_code == 404


async def test_true_false_needs_two_options(client, auth_headers, published_quiz):
    response = await client.post("/question", json={
        "quizId": published_quiz["quiz_id"],
        "questions": [{
            "questionText": "Sky is blue",
            "type": "TRUEORFALSE",
            "marks": 1,
            "options": [
                {"option": "True", "isCorrect": True},
                {"option": "False"},
                {"option": "Maybe"},
            ],
        }],
    }, headers=auth_headers(100, EDITOR))

    assert response.status_code == 422


async def test_learner_view_hides_answer_keys(client, auth_headers, published_quiz):
    response = await client.get(f"/quiz/{published_quiz['quiz_id']}", headers=auth_headers(7))

    assert response.status_code == 200
    body = response.json()
    assert body["status"] is True
    quiz = body["data"]
    assert quiz["totalMarks"] == 15
    assert quiz["passMarks"] == 6
    assert quiz["level"] == "LESSON"
    assert quiz["contentId"] == published_quiz["lesson_id"]
    assert quiz["questions"][0]["options"] == [{"option": "Paris"}, {"option": "Lyon"}]
    assert "isCorrect" not in str(body)
    assert "answer" not in quiz["questions"][0]


async def test_question_list_for_learner_omits_correctness(client, auth_headers, published_quiz):
    response = await client.get(
        "/question", params={"quizId": published_quiz["quiz_id"]}, headers=auth_headers(7)
    )

    assert response.status_code == 200
    assert len(response.json()["data"]) == 2
    assert "isCorrect" not in str(response.json())

    response = await client.get(
        "/question", params={"quizId": published_quiz["quiz_id"]}, headers=auth_headers(100, EDITOR)
    )
    assert "isCorrect" in str(response.json())


async def test_submit_flow(client, auth_headers, published_quiz):
    learner = auth_headers(7)
    quiz_id = published_quiz["quiz_id"]

    response = await client.post(
        f"/quiz/{quiz_id}/submit",
        json=submission(published_quiz["question_ids"], ["Paris", "Rome"]),
        headers=learner
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["obtainedMarks"] == 15
    assert data["totalMarks"] == 15
    assert data["passMarks"] == 6
    assert data["percentage"] == 100
    assert data["passed"] is True
    assert data["answers"][1]["correctAnswer"] == "Rome"
    assert data["reward"]["status"] == "awarded"
    assert data["reward"]["xpAwarded"] == 50

    # One attempt per learner per quiz
    response = await client.post(
        f"/quiz/{quiz_id}/submit",
        json=submission(published_quiz["question_ids"], ["Paris", "Rome"]),
        headers=learner
    )
    assert response.status_code == 400
    assert response.json()["error"] == "ALREADY_ATTEMPTED"

    # Lesson completion after the quiz reward credits nothing more
    response = await client.post(f"/lesson/{published_quiz['lesson_id']}/complete", headers=learner)
    assert response.status_code == 200
    assert response.json()["data"]["xpAwarded"] == 0

    response = await client.get("/reports/xp", headers=learner)
    assert response.json()["data"]["totalXp"] == 50

    response = await client.get(f"/quiz/{quiz_id}/attempts", headers=learner)
    attempts = response.json()["data"]
    assert len(attempts) == 1
    attempt_id = attempts[0]["id"]

    response = await client.get(f"/quiz/attempt/{attempt_id}", headers=learner)
    assert response.status_code == 200
    assert response.json()["data"]["quizTitle"] == "Europe"

    response = await client.get(f"/quiz/attempt/{attempt_id}", headers=auth_headers(8))
    assert response.status_code == 404

    response = await client.post(f"/quiz/attempt/{attempt_id}/reward", headers=learner)
    assert response.json()["data"]["status"] == "already_rewarded"


async def test_submit_errors(client, auth_headers, published_quiz):
    learner = auth_headers(7)

    response = await client.post("/quiz/9999/submit", json=submission([], []), headers=learner)
    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"

    response = await client.post(
        f"/quiz/{published_quiz['quiz_id']}/submit",
        json=submission([published_quiz["question_ids"][0], 9999], ["Paris", "x"]),
        headers=learner
    )
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_SUBMISSION"

    response = await client.post(
        f"/quiz/{published_quiz['quiz_id']}/submit",
        json={"answers": [{"questionId": published_quiz["question_ids"][0], "answer": 5}]},
        headers=learner
    )
    assert response.status_code == 422


async def test_question_mutations_keep_quiz_totals(client, auth_headers, published_quiz):
    editor = auth_headers(100, EDITOR)
    five_id, ten_id = published_quiz["question_ids"]

    response = await client.patch(f"/question/status/{five_id}", headers=editor)
    assert response.status_code == 200
    assert response.json()["data"]["status"] is False

    response = await client.delete(f"/question/{ten_id}", headers=editor)
    assert response.status_code == 200

    response = await client.patch(f"/question/status/{five_id}", headers=editor)
    assert response.status_code == 200

    response = await client.patch(f"/question/{five_id}", json={
        "questionText": "Capital of France?",
        "type": "FILLINTHEBLANK",
        "marks": 35,
        "answer": "Paris",
    }, headers=editor)
    assert response.status_code == 200
    assert response.json()["data"]["options"] == []

    response = await client.get(f"/quiz/{published_quiz['quiz_id']}", headers=auth_headers(7))
    quiz = response.json()["data"]
    assert (quiz["totalMarks"], quiz["passMarks"], quiz["timeLimit"]) == (35, 14, 0)

    response = await client.get("/question/9999", headers=editor)
    assert response.status_code == 404


async def test_leaderboard_and_performance(client, auth_headers, published_quiz):
    quiz_id = published_quiz["quiz_id"]
    await client.post(
        f"/quiz/{quiz_id}/submit",
        json=submission(published_quiz["question_ids"], ["Paris", "Milan"]),
        headers=auth_headers(7)
    )
    await client.post(
        f"/quiz/{quiz_id}/submit",
        json=submission(published_quiz["question_ids"], ["Paris", "Rome"]),
        headers=auth_headers(8)
    )

    response = await client.get(f"/quiz/{quiz_id}/leaderboard", headers=auth_headers(7))
    board = response.json()["data"]
    assert [entry["userId"] for entry in board["entries"]] == [8, 7]
    assert board["userPosition"] == 2

    response = await client.get("/reports/performance", headers=auth_headers(7))
    report = response.json()["data"]
    assert report["attempts"] == 1
    assert report["failed"] == 1
    assert report["totalXp"] == 0


async def test_quiz_catalog_routes(client, auth_headers, published_quiz, make_lesson):
    editor = auth_headers(100, EDITOR)
    learner = auth_headers(7)
    quiz_id = published_quiz["quiz_id"]

    response = await client.patch(f"/quiz/{quiz_id}", json={"title": "Nope"}, headers=learner)
    assert response.status_code == 403

    rivers = await make_lesson(xp=80, title="Rivers")
    response = await client.patch(
        f"/quiz/{quiz_id}", json={"title": "European capitals", "lessonId": rivers.id}, headers=editor
    )
    assert response.status_code == 200
    quiz = response.json()["data"]
    assert quiz["slug"] == "european-capitals"
    assert (quiz["level"], quiz["contentId"]) == ("LESSON", rivers.id)

    response = await client.get("/quiz/slug/european-capitals", headers=learner)
    assert response.status_code == 200
    assert response.json()["data"]["id"] == quiz_id

    response = await client.patch(f"/quiz/status/{quiz_id}", headers=editor)
    assert response.status_code == 200
    assert response.json()["data"]["status"] is False

    response = await client.get(f"/quiz/{quiz_id}", headers=learner)
    assert response.status_code == 404

    response = await client.post(
        f"/quiz/{quiz_id}/submit",
        json=submission(published_quiz["question_ids"], ["Paris", "Rome"]),
        headers=learner
    )
    assert response.status_code == 404

    await client.patch(f"/quiz/status/{quiz_id}", headers=editor)
    response = await client.post(
        f"/quiz/{quiz_id}/submit",
        json=submission(published_quiz["question_ids"], ["Paris", "Rome"]),
        headers=learner
    )
    assert response.status_code == 201
    reward = response.json()["data"]["reward"]
    assert (reward["lessonId"], reward["xpAwarded"]) == (rivers.id, 80)


async def test_empty_quiz_submission_scores_zero(client, auth_headers):
    response = await client.post("/quiz", json={"title": "Empty", "courseId": 1}, headers=auth_headers(100, EDITOR))
    quiz_id = response.json()["data"]["id"]

    response = await client.post(f"/quiz/{quiz_id}/submit", json={"answers": []}, headers=auth_headers(7))

    assert response.status_code == 201
    data = response.json()["data"]
    assert (data["totalMarks"], data["percentage"]) == (0, 0)
    assert data["reward"]["status"] == "not_applicable"
