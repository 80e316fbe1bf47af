import httpx

URL = "http://localhost:8000/events"


def main():
    # no read timeout: the stream stays open until the server goes away
    timeout = httpx.Timeout(5.0, read=None)
    print("Awaiting messages... (press Ctrl+C to exit)")
    try:
        with httpx.stream("GET", URL, timeout=timeout) as resp:
            resp.raise_for_status()
            event = {}
            for line in resp.iter_lines():
                if not line:
                    # blank line ends one event
                    if event:
                        print("Received:", event)
                    event = {}
                    continue
                if line.startswith(":"):
                    continue
                field, _, value = line.partition(":")
                value = value[1:] if value.startswith(" ") else value
                if field == "data" and "data" in event:
                    event["data"] += "\n" + value
                else:
                    event[field] = value
    except KeyboardInterrupt:
        print("Disconnected.")

if __name__ == "__main__":
    main()
