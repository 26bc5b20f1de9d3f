"""
Minimal ABIs for the contracts the bot talks to.

Only the functions actually called are listed.
"""

# Batch lookup contract: pages through a factory and reads many reserves at once
DEX_QUERY_ABI = [
    {
        "inputs": [
            {"internalType": "contract IUniswapV2Factory", "name": "_uniswapFactory", "type": "address"},
            {"internalType": "uint256", "name": "_start", "type": "uint256"},
            {"internalType": "uint256", "name": "_stop", "type": "uint256"},
        ],
        "name": "getPairsByIndexRange",
        "outputs": [{"internalType": "address[3][]", "name": "", "type": "address[3][]"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "contract IUniswapV2Pair[]", "name": "_pairs", "type": "address[]"}
        ],
        "name": "getReservesByPairs",
        "outputs": [{"internalType": "uint256[3][]", "name": "", "type": "uint256[3][]"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# function swap(uint amount0Out, uint amount1Out, address to, bytes calldata data)
PAIR_SWAP_SIGNATURE = "swap(uint256,uint256,address,bytes)"
PAIR_SWAP_ARG_TYPES = ["uint256", "uint256", "address", "bytes"]

# Bundle executor: pulls `volume` base asset into the first target, then runs
# every (target, payload) call in order and reverts unless it ends in profit
EXECUTOR_SIGNATURE = "uniswapWeth(uint256,address[],bytes[])"
EXECUTOR_ARG_TYPES = ["uint256", "address[]", "bytes[]"]
