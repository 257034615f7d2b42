"""Command-line interface for pureblp"""
import sys
import argparse
import logging
import time
import os
import imageio.v3 as iio
from .blp import BLP, decode, probe, save
from .enums import BLPCompression, DEFAULT_JPEG_QUALITY, MAX_MIPMAPS
from .errors import BLPError
from .pipeline import EncodeOptions


def main(argv=None):
    """Command-line interface for pureblp"""
    parser = argparse.ArgumentParser(
        description='Read, convert and write BLP1 texture files',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pureblp texture.blp                               # Display BLP file info
  pureblp texture.blp -o output.png                 # Convert to PNG
  pureblp texture.blp -o output.png -m 1            # Extract mipmap level 1
  pureblp texture.blp -o output.png --all           # Extract all mipmap levels
  pureblp image.png -o texture.blp                  # Encode as JPEG BLP1 with full mip chain
  pureblp image.png -o texture.blp --max-levels 4   # Encode with at most 4 mip levels
  pureblp image.png -o texture.blp --direct         # Encode as paletted BLP1
        """
    )

    parser.add_argument('input', help='Input BLP file, or an image to encode')
    parser.add_argument('-o', '--output', help='Output path (e.g., output.png or texture.blp)')
    parser.add_argument('-m', '--mipmap', type=int, default=0,
                        help='Mipmap level to extract (default: 0 = full resolution)')
    parser.add_argument('--all', action='store_true',
                        help='Extract all mipmap levels')
    parser.add_argument('--max-levels', type=int, default=MAX_MIPMAPS,
                        help=f'Maximum number of mipmap levels to write (1-{MAX_MIPMAPS}, default: {MAX_MIPMAPS})')
    parser.add_argument('--quality', type=int, default=DEFAULT_JPEG_QUALITY,
                        help=f'JPEG quality when encoding (default: {DEFAULT_JPEG_QUALITY})')
    parser.add_argument('--direct', action='store_true',
                        help='Encode with a palette instead of JPEG')
    parser.add_argument('--alpha-bits', type=int, choices=(0, 1, 4, 8),
                        help='Alpha depth when encoding (default: 8 if the image has alpha, else 0)')
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='Log progress (repeat for debug output)')
    parser.add_argument('-q', '--quiet', action='store_true',
                        help='Only log errors')

    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.quiet)

    try:
        with open(args.input, 'rb') as f:
            data = f.read()

        if args.output and args.output.lower().endswith('.blp'):
            if probe(data):
                # BLP to BLP: re-encode the selected level with the requested options
                return encode_image(args, decode(data, args.mipmap))
            return encode_image(args)

        blp = BLP.from_bytes(data)
        print(blp)

        if args.output:
            levels = list(range(blp.get_mip_count())) if args.all else [args.mipmap]
            output_base, output_ext = os.path.splitext(args.output)

            for level in levels:
                output_file = f"{output_base}_mip{level}{output_ext}" if len(levels) > 1 else args.output

                print(f"\nConverting to image (mipmap level {level})...")

                start_decode = time.perf_counter()
                image_array = blp.to_image(mipmap_level=level)
                decode_time = time.perf_counter() - start_decode

                start_save = time.perf_counter()
                iio.imwrite(output_file, image_array)
                save_time = time.perf_counter() - start_save

                print(f"Saved to: {output_file}")
                print(f"Image size: {image_array.shape[1]}x{image_array.shape[0]}")
                print(f"Decode time: {decode_time*1000:.2f} ms")
                print(f"Save time: {save_time*1000:.2f} ms")

    except FileNotFoundError:
        print(f"Error: File '{args.input}' not found")
        sys.exit(1)
    except BLPError as e:
        print(f"Error reading BLP file ({e.kind}): {e}")
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    return 0


def encode_image(args, image=None) -> int:
    """Encode a regular image file (or an already decoded BLP) into BLP1"""
    if image is None:
        image = iio.imread(args.input)

    options = EncodeOptions(
        max_levels=args.max_levels,
        compression=BLPCompression.DIRECT if args.direct else BLPCompression.JPEG,
        quality=args.quality,
        alpha_bits=args.alpha_bits,
    )

    start_encode = time.perf_counter()
    header = save(args.output, image, options)
    encode_time = time.perf_counter() - start_encode

    print(f"Saved to: {args.output}")
    print(f"Image size: {header.width}x{header.height}")
    print(f"Format: {header.compression.name}, alpha bits: {header.alpha_bits}")
    print(f"Mipmap levels: {header.get_mip_count()}")
    print(f"Encode time: {encode_time*1000:.2f} ms")
    return 0


def configure_logging(verbose: int, quiet: bool) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')


if __name__ == "__main__":
    main()
