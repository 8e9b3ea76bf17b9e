import logging
import os
import weakref
import webbrowser
from concurrent.futures import Executor, Future, ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from functools import partial
from typing import Callable, Iterable, Optional

import requests
from dotenv import load_dotenv

from models import DetailFetchFailed, ListFetchFailed, Story, StoryRef

# Setup
logging.basicConfig(level=logging.INFO)
load_dotenv()

# Parameters
HN_BASE_URL = "https://hacker-news.firebaseio.com/v0/"
NEWS_LIMIT = 50  # Number of top stories to load
MAX_WORKERS = 10  # Concurrent item fetches
USER_AGENT = "top-stories-reader/0.1"

# Networking
# Use short connect timeout and reasonable read timeout to avoid hangs
DEFAULT_TIMEOUT = (5, 15)


def open_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT})
    return session


def _endpoint(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path}.json"


def fetch_top_story_ids(
    session: requests.Session, limit: int = NEWS_LIMIT, base_url: str = HN_BASE_URL
) -> list[StoryRef]:
    if limit <= 0:
        return []
    try:
        response = session.get(
            _endpoint(base_url, "topstories"),
            params={"orderBy": '"$key"', "limitToFirst": limit},
            timeout=DEFAULT_TIMEOUT,
        )
    except requests.exceptions.RequestException as e:
        logging.error(f"Failed to fetch top stories: {e}")
        raise ListFetchFailed(str(e)) from e
    if response.status_code != 200:
        logging.error(f"Failed to fetch top stories: {response.status_code}")
        raise ListFetchFailed(f"status {response.status_code}")
    try:
        data = response.json()
    except ValueError as e:
        logging.error("Failed to parse top stories response JSON")
        raise ListFetchFailed("invalid JSON") from e
    if not isinstance(data, list):
        logging.error(f"Unexpected top stories payload: {type(data).__name__}")
        raise ListFetchFailed("payload is not a list")
    ids = [i for i in data if isinstance(i, int) and not isinstance(i, bool)]
    return ids[:limit]


def fetch_item(session: requests.Session, story_id: StoryRef, base_url: str = HN_BASE_URL) -> dict:
    try:
        response = session.get(_endpoint(base_url, f"item/{story_id}"), timeout=DEFAULT_TIMEOUT)
    except requests.exceptions.RequestException as e:
        raise DetailFetchFailed(story_id, str(e)) from e
    if response.status_code != 200:
        raise DetailFetchFailed(story_id, f"status {response.status_code}")
    try:
        data = response.json()
    except ValueError as e:
        raise DetailFetchFailed(story_id, "invalid JSON") from e
    # Deleted items come back as null
    return data if isinstance(data, dict) else {}


def fetch_story(session: requests.Session, story_id: StoryRef, base_url: str = HN_BASE_URL) -> Story:
    return Story.from_record(fetch_item(session, story_id, base_url))


def aggregate(
    ids: Iterable[StoryRef],
    fetch_one: Callable[[StoryRef], Story],
    max_workers: int = MAX_WORKERS,
) -> list[Story]:
    """Fetch every story concurrently and return them newest first.

    A fetch that raises is counted as done and left out of the result.
    Stories with equal timestamps keep the order of ``ids``.
    """
    ids = list(ids)
    if not ids:
        return []

    loaded: list[tuple[int, Story]] = []
    completed = 0
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(ids)))) as pool:
        futures = {pool.submit(fetch_one, story_id): index for index, story_id in enumerate(ids)}
        for future in as_completed(futures):
            completed += 1
            index = futures[future]
            try:
                loaded.append((index, future.result()))
            except Exception as e:
                logging.error(f"Failed to fetch story {ids[index]}: {e}")

    logging.info(f"{len(loaded)}/{completed} stories loaded")
    loaded.sort(key=lambda pair: pair[0])
    loaded.sort(key=lambda pair: pair[1].time, reverse=True)
    return [story for _, story in loaded]


def load_top_stories(
    session: requests.Session,
    limit: int = NEWS_LIMIT,
    base_url: str = HN_BASE_URL,
    max_workers: int = MAX_WORKERS,
) -> list[Story]:
    try:
        ids = fetch_top_story_ids(session, limit, base_url)
    except ListFetchFailed:
        return []
    if not ids:
        logging.info("No top stories")
        return []
    return aggregate(ids, partial(fetch_story, session, base_url=base_url), max_workers)


def time_ago(when: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    seconds = int((now - when).total_seconds())
    minutes, hours, days = seconds // 60, seconds // 3600, seconds // 86400

    if seconds < 3:
        return "Just now"
    if seconds < 60:
        return f"{seconds} seconds ago"
    if minutes < 2:
        return "A minute ago"
    if minutes < 60:
        return f"{minutes} minutes ago"
    if hours < 2:
        return "An hour ago"
    if hours < 24:
        return f"{hours} hours ago"
    if days < 2:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 14:
        return "Last week"
    if days < 30:
        return f"{days // 7} weeks ago"
    if days < 60:
        return "Last month"
    if days < 365:
        return f"{days // 30} months ago"
    if days < 730:
        return "Last year"
    return f"{days // 365} years ago"


def _deliver(ref: "weakref.ref[StoryList]", future: Future) -> None:
    screen = ref()
    if screen is None or screen.closed:
        logging.debug("Dropping stories for a closed list")
        return
    if future.cancelled():
        logging.info("Story refresh cancelled")
        screen.loading = False
        return
    error = future.exception()
    if error is not None:
        logging.error(f"Failed to load stories: {error}")
        screen.loading = False
        return
    screen.show(future.result())


class StoryList:
    """Screen model for the top stories list."""

    def __init__(
        self,
        session: requests.Session,
        limit: int = NEWS_LIMIT,
        base_url: str = HN_BASE_URL,
        max_workers: int = MAX_WORKERS,
    ):
        self.session = session
        self.limit = limit
        self.base_url = base_url
        self.max_workers = max_workers
        self.stories: list[Story] = []
        self.loading = False
        self.closed = False

    def refresh(self) -> list[Story]:
        self.loading = True
        try:
            self.show(load_top_stories(self.session, self.limit, self.base_url, self.max_workers))
        finally:
            self.loading = False
        return self.stories

    def refresh_in_background(self, executor: Executor) -> Future:
        self.loading = True
        # The job must not hold the list, only the weak reference does
        future = executor.submit(
            load_top_stories, self.session, self.limit, self.base_url, self.max_workers
        )
        future.add_done_callback(partial(_deliver, weakref.ref(self)))
        return future

    def show(self, stories: list[Story]) -> None:
        self.stories = stories
        self.loading = False

    def close(self) -> None:
        self.closed = True
        self.loading = False

    def render_rows(self, now: Optional[datetime] = None) -> list[str]:
        width = len(str(len(self.stories)))
        return [
            f"{number:>{width}}. {story.title}\n{' ' * (width + 2)}{time_ago(story.time, now)}"
            for number, story in enumerate(self.stories, start=1)
        ]

    def select(self, index: int, opener: Optional[Callable[[str], object]] = None) -> Optional[str]:
        """Open the story at ``index``.

        Stories without a link return their text, or open the discussion
        page when they have no text either.
        """
        if not 0 <= index < len(self.stories):
            raise IndexError(f"no story at row {index}")
        story = self.stories[index]
        if story.url:
            (opener or webbrowser.open)(story.url)
            return None
        logging.info(f"Story {story.id} has no link")
        if not story.text and story.hn_url:
            (opener or webbrowser.open)(story.hn_url)
            return None
        return story.text


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError:
        logging.error(f"Invalid {name}={value!r}; using {default}")
        return default


def main():
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    BASE_URL = os.getenv("HN_BASE_URL", HN_BASE_URL)
    LIMIT = _env_int("NEWS_LIMIT", NEWS_LIMIT)
    WORKERS = _env_int("MAX_WORKERS", MAX_WORKERS)

    logging.getLogger().setLevel(getattr(logging, LOG_LEVEL.upper(), logging.INFO))

    session = open_session()
    screen = StoryList(session, LIMIT, BASE_URL, WORKERS)
    try:
        screen.refresh()
        if not screen.stories:
            logging.info("No stories")
            return

        for row in screen.render_rows():
            print(row)

        while True:
            try:
                choice = input("Open story # (blank to quit): ").strip()
            except EOFError:
                break
            if not choice:
                break
            try:
                text = screen.select(int(choice) - 1)
            except (ValueError, IndexError):
                logging.error(f"Not a story number: {choice}")
                continue
            if text:
                print(text)
    finally:
        screen.close()
        session.close()


if __name__ == "__main__":
    main()
