# scripts/gen_key.py
import sys

from padcryptor.aes import random_iv, random_key

SIZES = {"128": 16, "192": 24, "256": 32}


def main():
    bits = "256"
    if len(sys.argv) == 3 and sys.argv[1] == "--bits":
        bits = sys.argv[2]
    elif len(sys.argv) != 1:
        print("Usage: python scripts/gen_key.py [--bits 128|192|256]")
        sys.exit(1)
    if bits not in SIZES:
        print(f"Unsupported key size: {bits} (choose 128, 192 or 256)")
        sys.exit(1)

    print(f"key={random_key(SIZES[bits]).hex()}")
    print(f"iv={random_iv().hex()}")


if __name__ == "__main__":
    main()
