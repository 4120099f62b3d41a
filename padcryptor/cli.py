# padcryptor/cli.py
import argparse
import json
import logging
import sys
from typing import List, Optional

from padcryptor.aes import DEFAULT_IV, get_primitive
from padcryptor.config import load_settings
from padcryptor.cryptor import CryptorRequest, PaddedCryptor
from padcryptor.status import CryptorStatus, ParameterError

logger = logging.getLogger("padcryptor.cli")


def _bhex(s: str) -> bytes:
    try:
        return bytes.fromhex(s)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid hex: {e}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="padcryptor", description="AES with PKCS#7 padding (CBC or ECB)")
    p.add_argument("op", choices=["encrypt", "decrypt"])
    p.add_argument("--key", type=_bhex, required=True, help="AES key in hex (16, 24 or 32 bytes)")
    iv = p.add_mutually_exclusive_group()
    iv.add_argument("--iv", type=_bhex, help="CBC initialisation vector in hex (16 bytes)")
    iv.add_argument("--ecb", action="store_true", help="Use ECB mode (no IV)")

    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--in", dest="in_text", type=str, help="Input text (UTF-8), encrypt only")
    src.add_argument("--in-hex", dest="in_hex", type=_bhex, help="Input as hex bytes")
    src.add_argument("--in-file", dest="in_file", type=str, help="Read input bytes from a file")

    p.add_argument("--out-file", dest="out_file", type=str, help="Write raw output bytes to a file")
    p.add_argument("--hex-output", action="store_true", help="Print decrypted output as hex")
    p.add_argument("--backend", type=str, help="Cipher backend (pycryptodome or cryptography)")
    p.add_argument("--env-file", type=str, help="Load settings from this .env file")
    p.add_argument("--json", action="store_true", help="Output JSON to stdout")
    return p


def _input_bytes(args: argparse.Namespace) -> bytes:
    if args.in_hex is not None:
        return args.in_hex
    if args.in_file is not None:
        with open(args.in_file, "rb") as f:
            return f.read()
    return args.in_text.encode("utf-8")


def _fail(args: argparse.Namespace, message: str, status: CryptorStatus, code: int) -> int:
    if args.json:
        print(json.dumps({"error": message, "status": int(status)}), flush=True)
    else:
        print(f"Error: {message}", flush=True)
    return code


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.op == "decrypt" and args.in_text is not None:
        parser.error("--in is only valid for encrypt; pass ciphertext with --in-hex or --in-file")

    try:
        settings = load_settings(args.env_file)
        primitive = get_primitive(args.backend or settings.backend)
    except ValueError as e:
        return _fail(args, str(e), CryptorStatus.PARAM_ERROR, 2)
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    if args.ecb:
        iv = None
    elif args.iv is not None:
        iv = args.iv
    else:
        logger.warning("No --iv given; using the all-zero IV. Pass a random IV per message.")
        iv = DEFAULT_IV

    try:
        data = _input_bytes(args)
    except OSError as e:
        return _fail(args, f"cannot read input: {e}", CryptorStatus.PARAM_ERROR, 2)

    if args.op == "encrypt":
        request = CryptorRequest.to_encrypt(data, args.key, iv)
    else:
        request = CryptorRequest.to_decrypt(data, args.key, iv)

    result = PaddedCryptor(primitive, zeroize=settings.zeroize).execute(request)
    if not result.ok:
        if isinstance(result.error, ParameterError):
            return _fail(args, str(result.error), result.status, 2)
        # Same text for every cipher failure, whatever the cause.
        return _fail(args, f"{args.op} failed", result.status, 1)

    output = result.output
    if args.out_file:
        with open(args.out_file, "wb") as f:
            f.write(output)
        print(f"{args.op}ed {len(data)} -> {len(output)} bytes", file=sys.stderr)

    out = {"op": args.op, "mode": request.mode.name.lower(), "length": len(output)}
    if args.op == "encrypt":
        out["ciphertext"] = output.hex()
    elif args.hex_output:
        out["plaintext_hex"] = output.hex()
    else:
        out["plaintext"] = output.decode("utf-8", errors="replace")

    if args.json:
        print(json.dumps(out))
    elif "ciphertext" in out:
        print(f"ciphertext={out['ciphertext']}")
    elif "plaintext_hex" in out:
        print(f"plaintext_hex={out['plaintext_hex']}")
    else:
        print(f"plaintext={out['plaintext']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
