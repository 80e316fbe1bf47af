import sys

import httpx

URL = "http://localhost:8000/msg"


def main():
    text = " ".join(sys.argv[1:]) or "hello from the publisher"
    print("Client Message: ", text)
    resp = httpx.post(URL, content=text.encode("utf-8"), headers={"Content-Type": "text/plain"})
    resp.raise_for_status()
    print("Server:", resp.json())

if __name__ == "__main__":
    main()
