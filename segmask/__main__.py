import sys

from segmask.main import build_parser, main

if len(sys.argv) == 1:
    build_parser().print_help()
    raise SystemExit(0)

main()
