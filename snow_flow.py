from typing import Optional

import pendulum
import requests
from prefect import flow, task, get_run_logger
from prefect.blocks.system import Secret
from prefect.cache_policies import NONE
from pydantic import BaseModel, SecretStr

from storage import VariableStorage


TZ = "America/Toronto"

# Snow levels (in cm) worth waking up early for, checked independently
THRESHOLDS = [
    ((5, 0), 40),
    ((6, 0), 20),
    ((6, 30), 5),
]

WEATHER_URL = "https://api.pirateweather.net/forecast"
PUSHOVER_URL = "https://api.pushover.net/1/messages.json"

ALREADY_SENT = "Message was already sent today!"


class ShovelSecrets(BaseModel):
    pirate_weather_key: SecretStr
    pushover_user: SecretStr
    pushover_token: SecretStr
    latitude: float
    longitude: float


def load_secrets():
    """
    Build the secrets from the Prefect Secret blocks of this deployment.
    """
    return ShovelSecrets(
        pirate_weather_key=Secret.load("pirate-weather-key").get(),
        pushover_user=Secret.load("pushover-user").get(),
        pushover_token=Secret.load("pushover-token").get(),
        latitude=Secret.load("shovel-latitude").get(),
        longitude=Secret.load("shovel-longitude").get(),
    )


def local_now(timezone):
    return pendulum.now(timezone)


def overnight_window(now):
    """
    Snowfall we care about: yesterday 21:00 up to (not including) today 22:00.
    """
    start = now.subtract(days=1).set(hour=21, minute=0, second=0, microsecond=0)
    end = now.set(hour=22, minute=0, second=0, microsecond=0)
    return start, end


def to_samples(hourly, timezone):
    """
    Map provider hourly rows to (time, snow) tuples; rows without an
    accumulation count as no snow.
    """
    return [
        (pendulum.from_timestamp(row["time"], tz=timezone), row.get("precipAccumulation") or 0)
        for row in hourly
    ]


def window_samples(samples, start, end):
    return [(time, snow) for time, snow in samples if start <= time < end]


def total_snow(samples, start, end):
    return sum(snow for _, snow in window_samples(samples, start, end))


def should_notify(snow_total, now):
    """
    True if any rule matches: local time at or past the rule's time of day and
    snow strictly above its threshold.
    """
    for (hour, minute), minimum in THRESHOLDS:
        if now >= now.set(hour=hour, minute=minute, second=0, microsecond=0) and snow_total > minimum:
            return True
    return False


@task(cache_policy=NONE)
def read_last_message_sent(storage):
    data = storage.get()
    return data.get("lastMessageSent") if data else None


@task(cache_policy=NONE)
def write_last_message_sent(storage, day):
    storage.set({"lastMessageSent": day})


@task
def pull_hourly(api_key, latitude, longitude, day_start):
    """
    Extract the hourly block (SI units, snow in cm) of the day starting at
    `day_start`.
    """
    url = f"{WEATHER_URL}/{api_key}/{latitude},{longitude},{day_start.int_timestamp}"
    r = requests.get(
        url, params={"units": "si", "exclude": "currently,minutely,daily,alerts"}, timeout=30
    )
    r.raise_for_status()
    data = r.json()
    return data.get("hourly", {}).get("data", [])


@task(cache_policy=NONE)
def send_notification(user, token, snow_total, debug=False):
    """
    Emergency priority makes Pushover re-deliver the alarm every `retry`
    seconds until it is acknowledged or `expire` runs out.
    """
    logger = get_run_logger()
    payload = {
        "token": token,
        "user": user,
        "message": f"Time to wake up, there is over {snow_total:.1f}cm of snow outside!",
        "title": "Time to Shovel!",
        "sound": "persistent",
        "retry": 60,
        "expire": 6 * 60 * 60,
        "priority": 0 if debug else 2,
    }
    try:
        r = requests.post(PUSHOVER_URL, data=payload, timeout=20)
        r.raise_for_status()
    except requests.RequestException as exc:
        logger.error("Cannot send pushover notification: %s", exc)
        raise
    result = r.json()
    logger.info("Sent pushover notification: %s", result.get("request"))
    return result


@flow(name="Need To Shovel")
def need_to_shovel(timezone: str = TZ, secrets: Optional[ShovelSecrets] = None, storage=None, debug: bool = False):
    logger = get_run_logger()
    if secrets is None:
        secrets = load_secrets()
    if storage is None:
        storage = VariableStorage()

    now = local_now(timezone)
    today = now.to_date_string()
    if read_last_message_sent(storage) == today:
        logger.info("Message was already sent today, exiting.")
        return ALREADY_SENT

    api_key = secrets.pirate_weather_key.get_secret_value()
    yesterday = pull_hourly.submit(
        api_key, secrets.latitude, secrets.longitude, now.subtract(days=1).start_of("day")
    )
    current = pull_hourly.submit(api_key, secrets.latitude, secrets.longitude, now.start_of("day"))
    hourly = yesterday.result() + current.result()

    start, end = overnight_window(now)
    samples = to_samples(hourly, timezone)
    snow_total = round(total_snow(samples, start, end), 1)
    if debug:
        for time, snow in window_samples(samples, start, end):
            logger.info("Snow level at %s: %s", time.to_iso8601_string(), snow)
    logger.info("Total snow level: %scm", snow_total)

    if not should_notify(snow_total, now):
        return f"Snow level is {snow_total:.1f}cm, no need to shovel!"

    send_notification(
        secrets.pushover_user.get_secret_value(),
        secrets.pushover_token.get_secret_value(),
        snow_total,
        debug=debug,
    )
    # Store today so no more messages are sent until tomorrow
    write_last_message_sent(storage, today)
    return f"Snow level is {snow_total:.1f}cm, message has been sent!"


if __name__ == "__main__":
    need_to_shovel.serve(name="need-to-shovel", cron="*/15 4-7 * * *")
