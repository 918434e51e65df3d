import logging
import os
import random
import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
from logging.handlers import RotatingFileHandler
from typing import Awaitable, Callable, List, Optional

import httpx
import uvicorn
from fastapi import (
    Cookie,
    Depends,
    FastAPI,
    Form,
    Request,
    Response,
)
from fastapi.responses import JSONResponse

from .card_api import PokemonTCGClient, TCGdexClient, get_random_cards
from .card_library import CardLibrary
from .collection import CollectionStore
from .config import settings
from .exceptions import CardSourceError, NotEnoughCardsError
from .models import (
    AnswerRecord,
    Card,
    CollectedCard,
    ImportResult,
    PreferencesUpdate,
    SessionData,
)
from .preferences import AVAILABLE_SETS, PreferenceStore
from .quiz import QuizFactory, check_answer, describe_duel, is_rare_card
from .storage import KeyValueStore, get_store

# --- Logging Setup ---
logger = logging.getLogger(__name__)
package_logger = logging.getLogger("tcgmath")
package_logger.setLevel(logging.INFO)

if not os.path.exists(settings.LOG_DIR):
    os.makedirs(settings.LOG_DIR)
log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
file_handler.setFormatter(
    logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
)
package_logger.addHandler(file_handler)

QUIZ_MODES = ("single", "duel")
CARD_SOURCES = ("library", "pokemontcg", "tcgdex")
MAX_DRAWS = 5

CardLoader = Callable[[str, str], Awaitable[List[Card]]]


# --- Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    card_library.load_all()
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

card_library = CardLibrary(settings.CARD_DIR)


def collection_key(player_id: str) -> str:
    return f"{settings.COLLECTION_KEY}:{player_id}"


def preferences_key(player_id: str) -> str:
    return f"{settings.SETTINGS_KEY}:{player_id}"


def session_key(session_id: str) -> str:
    return f"{settings.SESSION_KEY}:{session_id}"


async def load_cards(source: str, selected_set: str) -> List[Card]:
    if source == "pokemontcg":
        return await PokemonTCGClient().get_cards_for_quiz()
    if source == "tcgdex":
        return await TCGdexClient().get_cards_from_set(selected_set)
    return card_library.all_cards()


# --- Dependencies ---
def get_storage() -> KeyValueStore:
    return get_store()


def get_card_loader() -> CardLoader:
    return load_cards


def get_player_id(
    response: Response,
    player_id: Optional[str] = Cookie(None, alias=settings.PLAYER_COOKIE_NAME),
) -> str:
    if not player_id:
        player_id = str(uuid.uuid4())
        response.set_cookie(
            key=settings.PLAYER_COOKIE_NAME,
            value=player_id,
            httponly=True,
            samesite="Lax",
        )
        logger.info(f"New player: {player_id}")
    return player_id


def get_session_id(
    session_id: Optional[str] = Cookie(None, alias=settings.SESSION_COOKIE_NAME),
) -> Optional[str]:
    return session_id


def get_collection_store(
    player_id: str = Depends(get_player_id),
    storage: KeyValueStore = Depends(get_storage),
) -> CollectionStore:
    return CollectionStore(storage, collection_key(player_id))


def get_preference_store(
    player_id: str = Depends(get_player_id),
    storage: KeyValueStore = Depends(get_storage),
) -> PreferenceStore:
    return PreferenceStore(storage, preferences_key(player_id))


def get_active_session(
    session_id: Optional[str] = Depends(get_session_id),
    storage: KeyValueStore = Depends(get_storage),
) -> Optional[SessionData]:
    if not session_id:
        return None

    session_data = storage.get(session_key(session_id))
    if not session_data:
        return None

    try:
        session = SessionData.model_validate_json(session_data)
    except ValueError as e:
        logger.warning(f"Dropping unreadable session {session_id}: {e}")
        storage.delete(session_key(session_id))
        return None

    if datetime.now() - session.created_at > timedelta(
        minutes=settings.SESSION_TIMEOUT_MINUTES
    ):
        storage.delete(session_key(session_id))
        return None
    return session


def _try_again(message: str = "Could not load cards. Please try again.") -> JSONResponse:
    return JSONResponse({"error": message}, status_code=503)


def _public_question(session: SessionData) -> dict:
    """Question payload without the answers."""
    if session.duel:
        duel = session.duel
        return {
            "mode": session.mode,
            "questionText": describe_duel(duel),
            "attackerCard": duel.attacker_card,
            "defenderCard": duel.defender_card,
            "selectedAttack": duel.selected_attack,
            "options": duel.options,
            "answered": bool(session.answers),
        }
    question = session.question
    return {
        "mode": session.mode,
        "questionText": question.question_text,
        "card": question.card,
        "isPokemon": question.is_pokemon,
        "secondQuestion": question.second_question,
        "answered": bool(session.answers),
    }


# --- Routes ---
@app.get("/")
async def home():
    return {"name": settings.PROJECT_NAME, "modes": QUIZ_MODES, "sources": CARD_SOURCES}


@app.get("/api/sets")
async def get_sets():
    return {"sets": AVAILABLE_SETS, "decks": card_library.get_decks()}


@app.get("/api/preferences")
def get_preferences(prefs: PreferenceStore = Depends(get_preference_store)):
    return prefs.load()


@app.put("/api/preferences")
def update_preferences(
    update: PreferencesUpdate,
    prefs: PreferenceStore = Depends(get_preference_store),
):
    try:
        return prefs.update(**update.model_dump())
    except ValueError as e:
        return JSONResponse({"error": str(e)}, status_code=400)


@app.post("/start")
async def start_quiz_session(
    response: Response,
    mode: str = Form("single"),
    source: str = Form("library"),
    player_id: str = Depends(get_player_id),
    storage: KeyValueStore = Depends(get_storage),
    card_loader: CardLoader = Depends(get_card_loader),
):
    if mode not in QUIZ_MODES:
        return JSONResponse({"error": f"Unknown mode: {mode}"}, status_code=400)
    if source not in CARD_SOURCES:
        return JSONResponse({"error": f"Unknown card source: {source}"}, status_code=400)

    selected_set = PreferenceStore(storage, preferences_key(player_id)).load().selected_set
    try:
        cards = await card_loader(source, selected_set)
    except (CardSourceError, httpx.HTTPError) as e:
        logger.warning(f"Card source {source} failed: {e}")
        return _try_again()

    generator = QuizFactory.create(mode)
    session = SessionData(mode=mode, player_id=player_id, created_at=datetime.now())
    for _ in range(MAX_DRAWS):
        try:
            if mode == "duel":
                picked = get_random_cards(cards, 2)
            else:
                if not cards:
                    raise NotEnoughCardsError("No cards available")
                picked = [random.choice(cards)]
        except NotEnoughCardsError as e:
            logger.warning(f"Not enough cards from {source}: {e}")
            return _try_again(str(e))

        rare = is_rare_card(picked[0])
        question = generator.generate(picked, is_rare=rare)
        if question is None:
            continue
        if mode == "duel":
            session.duel = question
        else:
            session.question = question
            session.is_rare = rare
        break
    else:
        return _try_again("No playable question in these cards. Please try again.")

    new_id = str(uuid.uuid4())
    storage.set(
        session_key(new_id),
        session.model_dump_json(),
        ttl=timedelta(minutes=settings.SESSION_TIMEOUT_MINUTES),
    )
    logger.info(f"New session: {new_id} [Player: {player_id}, Mode: {mode}, Source: {source}]")

    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=new_id,
        httponly=True,
        samesite="Lax",
    )
    return _public_question(session)


@app.get("/api/quiz")
def get_question_data(session_data: Optional[SessionData] = Depends(get_active_session)):
    if not session_data:
        return JSONResponse({"error": "Session invalid"}, status_code=401)
    return _public_question(session_data)


@app.post("/submit_answer", response_model=AnswerRecord)
def submit_answer(
    answer: int = Form(...),
    second_answer: Optional[int] = Form(None),
    session_id: Optional[str] = Depends(get_session_id),
    session_data: Optional[SessionData] = Depends(get_active_session),
    storage: KeyValueStore = Depends(get_storage),
):
    if not session_data:
        return JSONResponse({"error": "Invalid session"}, status_code=401)

    store = CollectionStore(storage, collection_key(session_data.player_id))
    with store.lock:
        # Re-read under the lock so concurrent submits see each other's answer.
        session_data = get_active_session(session_id, storage)
        if not session_data:
            return JSONResponse({"error": "Invalid session"}, status_code=401)
        if session_data.answers:
            return JSONResponse({"error": "Already answered"}, status_code=400)

        if session_data.duel:
            question = session_data.duel
            question_text = describe_duel(question)
            card = question.defender_card
            card_based = True
        else:
            question = session_data.question
            question_text = question.question_text
            card = question.card
            card_based = question.is_pokemon

        is_correct = check_answer(question, answer, second_answer)

        hp_defeated = 0
        card_collected = False
        if is_correct:
            if card_based and card.hp:
                hp_defeated = card.hp
            card_collected = store.add_card(CollectedCard.from_card(card))
            if session_data.is_rare and card.card_set:
                store.unlock_rare_set(card.card_set.id)
        store.update_stats(is_correct, hp_defeated)
        streak = store.record_streak(is_correct, card if is_correct else None)

        record = AnswerRecord(
            question_text=question_text,
            user_answer=answer,
            correct_answer=question.correct_answer,
            user_second_answer=second_answer,
            second_answer=getattr(question, "second_answer", None),
            is_correct=is_correct,
            hp_defeated=hp_defeated,
            card_collected=card_collected,
            streak=streak,
        )
        session_data.answers.append(record)
        storage.set(
            session_key(session_id),
            session_data.model_dump_json(),
            ttl=timedelta(minutes=settings.SESSION_TIMEOUT_MINUTES),
        )
    logger.info(f"Answer in session {session_id}: correct={is_correct}")
    return record


@app.get("/api/collection")
def get_collection(store: CollectionStore = Depends(get_collection_store)):
    return store.load_collection()


@app.get("/api/stats")
def get_stats(store: CollectionStore = Depends(get_collection_store)):
    stats = store.get_stats()
    total = stats.total_questions
    score = round((stats.correct_answers / total) * 100) if total > 0 else 0
    return {**stats.model_dump(by_alias=True), "scorePercentage": score}


@app.delete("/api/collection")
def clear_collection(store: CollectionStore = Depends(get_collection_store)):
    store.clear_collection()
    return {"status": "success"}


@app.get("/api/collection/export")
def export_collection(store: CollectionStore = Depends(get_collection_store)):
    filename = f"pokemon-collection-{date.today().isoformat()}.json"
    return Response(
        content=store.export_collection(),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/collection/import", response_model=ImportResult)
async def import_collection(
    request: Request,
    store: CollectionStore = Depends(get_collection_store),
):
    try:
        text = (await request.body()).decode("utf-8")
    except UnicodeDecodeError:
        result = ImportResult(success=False, error="Failed to read file")
    else:
        result = store.import_collection(text)
    if not result.success:
        return JSONResponse(result.model_dump(), status_code=400)
    return result


@app.post("/api/reset")
def reset_session(
    response: Response,
    session_id: Optional[str] = Depends(get_session_id),
    storage: KeyValueStore = Depends(get_storage),
):
    if session_id:
        storage.delete(session_key(session_id))
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"status": "success"}


if __name__ == "__main__":
    uvicorn.run("tcgmath.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
