# src/blastinutils/blastinutils.py
from __future__ import annotations
import argparse, logging, pathlib, sys
from blastinutils.utility.progress import stage_bar
from blastinutils.utility.utils import setup_logging, load_config
from blastinutils.commands import CommandsToolKit
from blastinutils.errors import CorruptStreamError
from blastinutils.blast.run_blast import count_queries
# ── pipeline wrappers (return rc int, handle logging) ──────────────
from blastinutils.pipeline import run_makeblastdb_stage, run_blastp_stage, run_graph_stage

L = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="blastinutils",
        description="Build BLAST databases, run blastp and turn tabular hits into a node/link graph")
    # global flags
    ap.add_argument("-v", "--verbose", action="count", default=0, help="-v: info, -vv: use for debugging")
    ap.add_argument("--config", metavar="YAML", help="config file (default: $BLASTINUTILS_CONFIG or config/config.yaml)")
    ap.add_argument("--log-dir", metavar="DIR", help="folder for session logs (default: ./logs or $BLASTINUTILS_LOG_DIR)")
    sp = ap.add_subparsers(dest="cmd", required=True)

    # ── makeblastdb -------------------------------------------------------
    p_db = sp.add_parser("makeblastdb", help="Index a FASTA file as a BLAST database")
    p_db.add_argument("-i", "--input", required=True, metavar="FASTA")
    p_db.add_argument("-o", "--output", required=True, metavar="PREFIX", help="database prefix")
    p_db.add_argument("--dbtype", choices=["prot", "nucl"], help="overrides makeblastdb dbtype from config")
    p_db.add_argument("--dry-run", action="store_true", help="print the command and exit")

    # ── blastp -----------------------------------------------------------
    p_bp = sp.add_parser("blastp", help="Protein search streamed into a node/link graph")
    p_bp.add_argument("-q", "--query", required=True, metavar="FASTA")
    p_bp.add_argument("-d", "--db", required=True, metavar="PREFIX")
    p_bp.add_argument("-o", "--output", metavar="TSV", help="keep the raw tabular BLAST output here")
    p_bp.add_argument("--graph", metavar="JSON", default="-", help="graph JSON destination (default: stdout)")
    p_bp.add_argument("--links-tsv", metavar="TSV", help="also write links as a table")
    p_bp.add_argument("--nodes-tsv", metavar="TSV", help="also write the node id table")
    p_bp.add_argument("--evalue", type=float, help="maximum e-value passed to blastp")
    p_bp.add_argument("--threads", type=int, help="CPU threads to pass to blastp (-num_threads)")
    p_bp.add_argument("--max-target-seqs", type=int, help="hits kept per query")
    p_bp.add_argument("--dry-run", action="store_true", help="print the command and exit")

    # ── tabular -> graph ---------------------------------------------------
    p_gr = sp.add_parser("graph", help="Turn an existing BLAST tabular file into graph JSON")
    p_gr.add_argument("-i", "--input", required=True, metavar="TSV")
    p_gr.add_argument("-o", "--output", metavar="JSON", default="-", help="graph JSON destination (default: stdout)")
    p_gr.add_argument("--links-tsv", metavar="TSV", help="also write links as a table")
    p_gr.add_argument("--nodes-tsv", metavar="TSV", help="also write the node id table")
    p_gr.add_argument("--max-log-evalue", type=float, help="score used for evalue == 0 (default: graph.max_log_evalue from config, else 200)")
    p_gr.add_argument("--chunk-size", type=int, help="bytes per read while streaming")
    return ap


def main(argv: list[str] | None = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    LEVEL = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    setup_logging(args.log_dir, level=LEVEL, force=True, warn_if_generated=False)

    cfg = load_config(args.config) if args.config else load_config()
    toolkit = CommandsToolKit.from_config(cfg)

    try:
        if args.cmd == "makeblastdb":
            if args.dbtype:
                toolkit.params["makeblastdb"] = toolkit.with_param("makeblastdb", "dbtype", args.dbtype)
            if args.dry_run:
                print(toolkit.build_make_database_command(args.input, args.output))
                return 0
            rc = run_makeblastdb_stage(pathlib.Path(args.input), pathlib.Path(args.output),
                                       toolkit=toolkit, cfg=cfg)
            print(f" ✓ BLAST db : {args.output}", file=sys.stderr)
            return rc

        elif args.cmd == "blastp":
            for flag, value in (("evalue", args.evalue),
                                ("num_threads", args.threads),
                                ("max_target_seqs", args.max_target_seqs)):
                if value is not None:
                    toolkit.params["blastp"] = toolkit.with_param("blastp", flag, value)
            if args.dry_run:
                print(toolkit.build_blastp_command(args.db, args.query, args.output or "-"))
                return 0
            total = count_queries(args.query)
            # one monolithic bar for all queries; run_blastp ticks it through the thread-local
            with stage_bar(total, desc="blastp", unit="seq"):
                return run_blastp_stage(
                    pathlib.Path(args.query), args.db,
                    out_tsv=args.output,
                    out_json=args.graph,
                    links_tsv=args.links_tsv,
                    nodes_tsv=args.nodes_tsv,
                    total=total,
                    toolkit=toolkit, cfg=cfg,
                )

        elif args.cmd == "graph":
            tsv = pathlib.Path(args.input)
            if not tsv.is_file():
                raise FileNotFoundError(tsv)
            with stage_bar(tsv.stat().st_size, desc="graph", unit="B", unit_scale=True):
                return run_graph_stage(
                    tsv,
                    out_json=args.output,
                    links_tsv=args.links_tsv,
                    nodes_tsv=args.nodes_tsv,
                    max_log_evalue=args.max_log_evalue,
                    chunk_size=args.chunk_size,
                    cfg=cfg,
                )
    except CorruptStreamError as exc:
        L.error("aborting: %s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
